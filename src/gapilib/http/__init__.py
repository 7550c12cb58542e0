"""HTTP request description and the plain HTTP service"""

from gapilib.http.request import RequestConfig, HttpResult
from gapilib.http.service import HttpService, error_from_response, parse_response, mount_retries

__all__ = [
    "RequestConfig",
    "HttpResult",
    "HttpService",
    "error_from_response",
    "parse_response",
    "mount_retries",
]
