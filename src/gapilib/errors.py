"""Error type shared by every gapilib service and the Google API error payload"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class GapiError(Exception):
    """Error raised by gapilib services, carrying the HTTP exchange when there is one"""

    def __init__(
        self,
        message: Any,
        request: Optional[Any] = None,
        response: Optional[Any] = None,
    ) -> None:
        self.message = str(message)
        self.request = request
        self.response = response
        super().__init__(self.message)

    def set_message(self, message: Any) -> None:
        """Replace the error message, e.g. with the message from an API error payload"""
        self.message = str(message)
        self.args = (self.message,)

    @property
    def status_code(self) -> Optional[int]:
        """HTTP status of the failed response, if any"""
        if self.response is None:
            return None
        return getattr(self.response, "status_code", None)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"GapiError({self.message!r})"


class ErrorItem(BaseModel):
    """A single entry of the ``errors`` list in a Google API error payload"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    domain: str = ""
    message: str = ""
    reason: str = ""
    location: str = ""
    location_type: str = Field(default="", alias="locationType")


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: int = 0
    message: str = ""
    errors: list[ErrorItem] = Field(default_factory=list)
    status: str = ""


class ErrorResponse(BaseModel):
    """General Google API error response

    Example payload:
        {"error": {"code": 404, "message": "Not found", "status": "NOT_FOUND",
                   "errors": [{"domain": "global", "reason": "notFound", "message": "Not found"}]}}
    """

    model_config = ConfigDict(extra="ignore")

    error: ErrorBody = Field(default_factory=ErrorBody)

    @property
    def message(self) -> str:
        return self.error.message
