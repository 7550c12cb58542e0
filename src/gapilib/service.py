"""Google API service with OAuth2, API key or access token authorization"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import SecretStr

from gapilib.errors import ErrorResponse, GapiError
from gapilib.http.request import HttpResult, RequestConfig
from gapilib.http.service import HttpService
from gapilib.oauth2.service import OAuth2Service
from gapilib.oauth2.token import Token, TokenSource

logger = logging.getLogger(__name__)


class AuthorizationMode(str, Enum):
    OAUTH2 = "oauth2"
    API_KEY = "apikey"
    ACCESS_TOKEN = "accesstoken"


@dataclass
class OAuth2ServiceConfig:
    """Settings of a GoogleService authorized with OAuth2

    redirect_url and refresh_margin fall back to the OAuth2Service defaults.
    """
    api_name: str
    client_id: str
    client_secret: Union[str, SecretStr]
    token_source: Optional[TokenSource] = None
    redirect_url: Optional[str] = None
    refresh_margin: Optional[timedelta] = None


def client_id_short(client_id: str) -> str:
    """Client id up to the first dot"""
    return client_id.split(".")[0]


class GoogleService:
    """Client for a single Google API

    Build it with one of with_oauth2, with_api_key or with_access_token. Every
    request is parsed for the Google error payload, whose message becomes the
    GapiError message.

    Example:
        >>> service = GoogleService.with_api_key("maps", "AIza...")
        >>> result = service.get("https://maps.googleapis.com/maps/api/geocode/json", params={"address": "Utrecht"})
        >>> result.data["status"]
        'OK'
    """

    def __init__(
        self,
        api_name: str,
        authorization_mode: AuthorizationMode,
        client_id: str = "",
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        http_service: Optional[HttpService] = None,
        oauth2_service: Optional[OAuth2Service] = None,
    ) -> None:
        self._api_name = api_name
        self._authorization_mode = authorization_mode
        self._client_id = client_id
        self._api_key = api_key
        self._access_token = access_token
        self._http_service = http_service
        self._oauth2_service = oauth2_service

    @classmethod
    def with_oauth2(cls, config: Optional[OAuth2ServiceConfig]) -> "GoogleService":
        if config is None:
            raise GapiError("ServiceConfig must not be None")
        if not config.client_id:
            raise GapiError("ClientID not provided")

        oauth2_service = OAuth2Service(
            config.client_id,
            config.client_secret,
            token_source=config.token_source,
            redirect_url=config.redirect_url,
            refresh_margin=config.refresh_margin,
        )
        return cls(
            config.api_name,
            AuthorizationMode.OAUTH2,
            client_id=config.client_id,
            oauth2_service=oauth2_service,
        )

    @classmethod
    def with_api_key(cls, api_name: str, api_key: Optional[str]) -> "GoogleService":
        if not api_key:
            raise GapiError("ApiKey not provided")

        return cls(api_name, AuthorizationMode.API_KEY, api_key=api_key, http_service=HttpService())

    @classmethod
    def with_access_token(cls, api_name: str, access_token: Optional[str]) -> "GoogleService":
        if not access_token:
            raise GapiError("AccessToken not provided")

        return cls(
            api_name,
            AuthorizationMode.ACCESS_TOKEN,
            access_token=access_token,
            http_service=HttpService(),
        )

    @classmethod
    def from_profile(
        cls, profile: str, path: Optional[Union[str, Path]] = None, **kwargs: Any
    ) -> "GoogleService":
        """Build the service described by a connections.toml profile, see GoogleServiceConnector"""
        from gapilib.connection import GoogleServiceConnector

        return GoogleServiceConnector(profile, path=path, **kwargs).service()

    @property
    def authorization_mode(self) -> AuthorizationMode:
        return self._authorization_mode

    @property
    def oauth2_service(self) -> Optional[OAuth2Service]:
        return self._oauth2_service

    def _require_oauth2(self) -> OAuth2Service:
        if self._oauth2_service is None:
            raise GapiError(
                f"{self._api_name} service is not authorized with OAuth2 "
                f"(authorization mode: {self._authorization_mode.value})"
            )
        return self._oauth2_service

    def http_request(self, config: RequestConfig) -> HttpResult:
        """Send a request with this service's authorization

        Raises:
            GapiError: With the message of the Google error payload when there is one
        """
        config.error_model = ErrorResponse

        if self._authorization_mode == AuthorizationMode.OAUTH2:
            return self._require_oauth2().http_request(config)

        if self._authorization_mode == AuthorizationMode.API_KEY:
            config.set_parameter("key", self._api_key)
        if self._access_token is not None:
            config.set_header("Authorization", f"Bearer {self._access_token}")

        assert self._http_service is not None
        return self._http_service.http_request(config)

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
        response_model: Optional[type] = None,
    ) -> HttpResult:
        config = RequestConfig(
            method=method,
            url=url,
            parameters=dict(params or {}),
            body_model=body,
            response_model=response_model,
        )
        return self.http_request(config)

    def get(self, url: str, params: Optional[dict[str, Any]] = None, response_model: Optional[type] = None) -> HttpResult:
        return self._request("GET", url, params=params, response_model=response_model)

    def post(self, url: str, body: Any = None, params: Optional[dict[str, Any]] = None, response_model: Optional[type] = None) -> HttpResult:
        return self._request("POST", url, params=params, body=body, response_model=response_model)

    def put(self, url: str, body: Any = None, params: Optional[dict[str, Any]] = None, response_model: Optional[type] = None) -> HttpResult:
        return self._request("PUT", url, params=params, body=body, response_model=response_model)

    def patch(self, url: str, body: Any = None, params: Optional[dict[str, Any]] = None, response_model: Optional[type] = None) -> HttpResult:
        return self._request("PATCH", url, params=params, body=body, response_model=response_model)

    def delete(self, url: str, params: Optional[dict[str, Any]] = None, response_model: Optional[type] = None) -> HttpResult:
        return self._request("DELETE", url, params=params, response_model=response_model)

    def init_token(
        self,
        scope: str,
        access_type: Optional[str] = None,
        prompt: Optional[str] = None,
        state: Optional[str] = None,
    ) -> Token:
        return self._require_oauth2().init_token(scope, access_type, prompt, state)

    def authorize_url(
        self,
        scope: str,
        access_type: Optional[str] = None,
        prompt: Optional[str] = None,
        state: Optional[str] = None,
    ) -> str:
        return self._require_oauth2().authorize_url(scope, access_type, prompt, state)

    def validate_token(self) -> Token:
        return self._require_oauth2().validate_token()

    def get_token_from_code(
        self, code: Optional[str] = None, authorization_response: Optional[str] = None
    ) -> Token:
        return self._require_oauth2().get_token_from_code(code, authorization_response)

    def api_name(self) -> str:
        return self._api_name

    def api_key(self) -> str:
        """Short client id, used to tell OAuth2 clients apart"""
        return client_id_short(self._client_id)

    def api_call_count(self) -> int:
        if self._oauth2_service is not None:
            return self._oauth2_service.api_call_count()
        assert self._http_service is not None
        return self._http_service.api_call_count()

    def api_reset(self) -> None:
        if self._oauth2_service is not None:
            self._oauth2_service.api_reset()
            return
        assert self._http_service is not None
        self._http_service.api_reset()

    def __repr__(self) -> str:
        return f"GoogleService(api_name='{self._api_name}', mode='{self._authorization_mode.value}')"
