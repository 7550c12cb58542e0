"""Request description passed to the HTTP services"""

from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from pydantic import BaseModel


@dataclass
class RequestConfig:
    """A single API call

    Attributes:
        method: HTTP method (GET, POST, PUT, PATCH, DELETE)
        url: Absolute URL of the endpoint
        parameters: Query string parameters
        body_model: JSON body, as a pydantic model or anything json-serializable
        response_model: pydantic model the JSON response is parsed into
        error_model: pydantic model the JSON error payload is parsed into
        non_default_headers: Headers added to the session defaults
    """
    method: str
    url: str
    parameters: dict[str, Any] = field(default_factory=dict)
    body_model: Any = None
    response_model: Optional[type] = None
    error_model: Optional[type[BaseModel]] = None
    non_default_headers: dict[str, str] = field(default_factory=dict)

    def set_parameter(self, key: str, value: Any) -> None:
        self.parameters[key] = value

    def set_header(self, key: str, value: str) -> None:
        self.non_default_headers[key] = value

    def json_body(self) -> Any:
        if isinstance(self.body_model, BaseModel):
            return self.body_model.model_dump(mode="json", by_alias=True, exclude_none=True)
        return self.body_model


@dataclass
class HttpResult:
    """Response of an API call together with its parsed body"""
    response: requests.Response
    data: Any = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def request(self) -> Any:
        return self.response.request

    def __repr__(self) -> str:
        return f"HttpResult(status_code={self.status_code}, url='{self.response.url}')"
