"""Plain HTTP service on top of a requests session

Retries are left to urllib3: the session adapters retry throttled and failing
calls with exponential backoff before the response reaches this module.
"""

import logging
from typing import Any, Optional

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from gapilib.errors import GapiError
from gapilib.http.request import HttpResult, RequestConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5
DEFAULT_TIMEOUT = 60.0
RETRY_STATUSES = (429, 500, 502, 503, 504)


def mount_retries(
    session: requests.Session,
    max_retries: int = DEFAULT_MAX_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
) -> requests.Session:
    """Mount retrying adapters for http and https on a session"""
    retry = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=None,
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def parse_response(response: requests.Response, response_model: Optional[type] = None) -> Any:
    """Parse a JSON response, into response_model when given; empty bodies give None"""
    if response.status_code == 204 or not response.content:
        return None

    try:
        payload = response.json()
    except ValueError:
        return response.text

    if response_model is None:
        return payload
    if issubclass(response_model, BaseModel):
        return response_model.model_validate(payload)
    return response_model(**payload)


def error_from_response(
    response: requests.Response, error_model: Optional[type[BaseModel]] = None
) -> GapiError:
    """Build the GapiError for a failed response

    The message is the one in the error payload when error_model can parse it,
    else the HTTP status line.
    """
    error = GapiError(
        f"{response.status_code} {response.reason or ''}".strip(),
        request=response.request,
        response=response,
    )

    if error_model is None:
        return error

    try:
        payload = error_model.model_validate(response.json())
    except (ValueError, ValidationError):
        return error

    message = getattr(payload, "message", "")
    if message:
        error.set_message(message)
    return error


class HttpService:
    """Execute RequestConfigs on a retrying requests session and count the calls"""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._timeout = timeout
        self._session = session or mount_retries(requests.Session(), max_retries, backoff_factor)
        self._call_count = 0

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def backoff_factor(self) -> float:
        return self._backoff_factor

    def http_request(
        self, config: RequestConfig, session: Optional[requests.Session] = None
    ) -> HttpResult:
        """Send the request described by config

        Args:
            config: The request
            session: Session to send it with, defaults to this service's session

        Raises:
            GapiError: On transport errors and on non-2xx responses
        """
        session = session or self._session
        self._call_count += 1

        logger.debug("%s %s", config.method, config.url)
        try:
            response = session.request(
                config.method,
                config.url,
                params=config.parameters or None,
                json=config.json_body(),
                headers=config.non_default_headers or None,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise GapiError(e, request=e.request) from e

        if not response.ok:
            raise error_from_response(response, config.error_model)

        try:
            data = parse_response(response, config.response_model)
        except (ValidationError, TypeError) as e:
            raise GapiError(e, request=response.request, response=response) from e

        return HttpResult(response=response, data=data)

    def api_call_count(self) -> int:
        return self._call_count

    def api_reset(self) -> None:
        self._call_count = 0

    def close(self) -> None:
        self._session.close()
