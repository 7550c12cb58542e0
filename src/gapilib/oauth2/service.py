"""OAuth2 authorization code flow for Google APIs

The token lives in a TokenSource. Requests go through a google-auth
AuthorizedSession, which refreshes an expired access token on its own; a
refreshed token is handed back to the token source and saved.
"""

import logging
from datetime import timedelta, timezone
from typing import Optional, Union
from urllib.parse import urlparse

import requests
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import AuthorizedSession, Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow, InstalledAppFlow
from pydantic import SecretStr

from gapilib.errors import GapiError
from gapilib.http.request import HttpResult, RequestConfig
from gapilib.http.service import DEFAULT_MAX_RETRIES, HttpService, mount_retries
from gapilib.oauth2.token import MemoryTokenSource, Token, TokenSource

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_REDIRECT_URL = "http://localhost:8080/oauth/redirect"
DEFAULT_REFRESH_MARGIN = timedelta(seconds=60)
TOKEN_TYPE = "Bearer"


def token_to_credentials(
    token: Token,
    client_id: str,
    client_secret: str,
    token_url: str = TOKEN_URL,
) -> Credentials:
    """google-auth credentials for a token; google-auth wants a naive UTC expiry"""
    expiry = None
    if token.expiry is not None:
        expiry = token.expiry.astimezone(timezone.utc).replace(tzinfo=None)

    return Credentials(
        token=token.access_token,
        refresh_token=token.refresh_token,
        token_uri=token_url,
        client_id=client_id,
        client_secret=client_secret,
        scopes=token.scope.split() if token.scope else None,
        expiry=expiry,
    )


def credentials_to_token(credentials: Credentials, previous: Optional[Token] = None) -> Token:
    """Token for google-auth credentials, keeping refresh token and scope of previous when missing"""
    scope = " ".join(credentials.scopes) if credentials.scopes else None
    refresh_token = credentials.refresh_token

    if previous is not None:
        scope = scope or previous.scope
        refresh_token = refresh_token or previous.refresh_token

    return Token(
        access_token=credentials.token,
        scope=scope,
        token_type=TOKEN_TYPE,
        refresh_token=refresh_token,
        expiry=credentials.expiry,
    )


class OAuth2Service:
    """Authorize, refresh and send requests for one OAuth2 client

    Example:
        >>> oauth2 = OAuth2Service("1234.apps.googleusercontent.com", "secret", token_source=tokens)
        >>> print(oauth2.authorize_url("https://www.googleapis.com/auth/webmasters.readonly"))
        >>> oauth2.get_token_from_code(code="4/0A...")
        >>> result = oauth2.http_request(RequestConfig("GET", "https://www.googleapis.com/webmasters/v3/sites"))
    """

    def __init__(
        self,
        client_id: str,
        client_secret: Union[str, SecretStr],
        token_source: Optional[TokenSource] = None,
        redirect_url: Optional[str] = None,
        auth_url: str = AUTH_URL,
        token_url: str = TOKEN_URL,
        refresh_margin: Optional[timedelta] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        if not client_id:
            raise GapiError("ClientID not provided")

        if not isinstance(client_secret, SecretStr):
            client_secret = SecretStr(client_secret or "")

        self._client_id = client_id
        self._client_secret = client_secret
        self._token_source = token_source if token_source is not None else MemoryTokenSource()
        self._redirect_url = redirect_url or DEFAULT_REDIRECT_URL
        self._auth_url = auth_url
        self._token_url = token_url
        self._refresh_margin = refresh_margin if refresh_margin is not None else DEFAULT_REFRESH_MARGIN
        self._max_retries = max_retries
        self._http = HttpService(max_retries=max_retries)
        self._flow: Optional[Flow] = None

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def redirect_url(self) -> str:
        return self._redirect_url

    @property
    def refresh_margin(self) -> timedelta:
        return self._refresh_margin

    @property
    def token_source(self) -> TokenSource:
        return self._token_source

    def _client_config(self, client_type: str = "web") -> dict:
        return {
            client_type: {
                "client_id": self._client_id,
                "client_secret": self._client_secret.get_secret_value(),
                "auth_uri": self._auth_url,
                "token_uri": self._token_url,
                "redirect_uris": [self._redirect_url],
            }
        }

    def _build_flow(self, scope: Optional[str], state: Optional[str] = None) -> Flow:
        scopes = scope.split() if scope else None
        return Flow.from_client_config(
            self._client_config(), scopes=scopes, redirect_uri=self._redirect_url, state=state
        )

    @staticmethod
    def _authorization_kwargs(access_type: Optional[str], prompt: Optional[str]) -> dict:
        kwargs = {}
        if access_type:
            kwargs["access_type"] = access_type
        if prompt:
            kwargs["prompt"] = prompt
        return kwargs

    def authorize_url(
        self,
        scope: str,
        access_type: Optional[str] = None,
        prompt: Optional[str] = None,
        state: Optional[str] = None,
    ) -> str:
        """Consent URL for the given space separated scopes

        The flow is kept so that get_token_from_code can finish it.
        """
        self._flow = self._build_flow(scope, state)
        url, _ = self._flow.authorization_url(**self._authorization_kwargs(access_type, prompt))
        return url

    def get_token_from_code(
        self,
        code: Optional[str] = None,
        authorization_response: Optional[str] = None,
    ) -> Token:
        """Exchange the code of a redirect for a token and save it

        Args:
            code: The authorization code
            authorization_response: The full redirect URL, as alternative to code

        Raises:
            GapiError: If neither is given or the token endpoint refuses the code
        """
        if not code and not authorization_response:
            raise GapiError("Neither code nor authorization response provided")

        flow = self._flow or self._build_flow(None)
        try:
            if code:
                flow.fetch_token(code=code)
            else:
                flow.fetch_token(authorization_response=authorization_response)
        except (ValueError, requests.RequestException) as e:
            raise GapiError(f"Retrieving token failed: {e}") from e

        self._flow = None
        token = credentials_to_token(flow.credentials)
        self._token_source.set_token(token, True)
        logger.info("Retrieved new token for client %s", self._client_id)
        return token

    def init_token(
        self,
        scope: str,
        access_type: Optional[str] = None,
        prompt: Optional[str] = None,
        state: Optional[str] = None,
        open_browser: bool = True,
    ) -> Token:
        """Run the consent flow with a local redirect server and save the token

        The server listens on the host and port of the redirect URL and Google
        redirects to its root, http://<host>:<port>/, not to the path of the
        redirect URL. The flow runs as an installed (desktop) client, for which
        Google accepts any loopback redirect, so that URL needs no registration.
        """
        redirect = urlparse(self._redirect_url)
        flow = InstalledAppFlow.from_client_config(
            self._client_config("installed"),
            scopes=scope.split(),
            state=state,
        )

        kwargs = self._authorization_kwargs(access_type, prompt)
        try:
            credentials = flow.run_local_server(
                host=redirect.hostname or "localhost",
                port=redirect.port or 8080,
                open_browser=open_browser,
                **kwargs,
            )
        except (ValueError, requests.RequestException) as e:
            raise GapiError(f"Initializing token failed: {e}") from e

        token = credentials_to_token(credentials)
        self._token_source.set_token(token, True)
        return token

    def _refresh(self, token: Token) -> Token:
        if not token.refresh_token:
            raise GapiError("Token is expired and has no refresh token, run the authorization flow again")

        credentials = token_to_credentials(
            token, self._client_id, self._client_secret.get_secret_value(), self._token_url
        )
        try:
            credentials.refresh(Request())
        except RefreshError as e:
            raise GapiError(f"Refreshing token failed: {e}") from e

        logger.debug("Refreshed token for client %s", self._client_id)
        return credentials_to_token(credentials, previous=token)

    def validate_token(self) -> Token:
        """Current token, loaded from the token source and refreshed when it expires within the refresh margin

        Raises:
            GapiError: If there is no token or it cannot be refreshed
        """
        token = self._token_source.token()
        if token is None:
            self._token_source.retrieve_token()
            token = self._token_source.token()

        if token is None:
            token = self._token_source.new_token()
            if token is not None:
                self._token_source.set_token(token, True)

        if token is None:
            raise GapiError("No token available, run the authorization flow first")

        if not token.access_token or token.is_expired(self._refresh_margin):
            token = self._refresh(token)
            self._token_source.set_token(token, True)

        return token

    def http_request(self, config: RequestConfig) -> HttpResult:
        """Send a request with the current token

        A token refreshed by the session during the request is saved afterwards.
        """
        token = self.validate_token()
        credentials = token_to_credentials(
            token, self._client_id, self._client_secret.get_secret_value(), self._token_url
        )
        session = mount_retries(AuthorizedSession(credentials), self._max_retries)

        try:
            try:
                return self._http.http_request(config, session=session)
            except RefreshError as e:
                raise GapiError(f"Refreshing token failed: {e}") from e
            finally:
                session.close()
        finally:
            if credentials.token != token.access_token:
                self._save_refreshed(credentials_to_token(credentials, previous=token))

    def _save_refreshed(self, token: Token) -> None:
        """Hand a token refreshed during a request to the token source

        A failed save does not fail the request; the token stays in the source
        and is saved with the next refresh.
        """
        try:
            self._token_source.set_token(token, True)
        except GapiError as e:
            logger.error("Saving refreshed token for client %s failed: %s", self._client_id, e)

    def api_call_count(self) -> int:
        return self._http.api_call_count()

    def api_reset(self) -> None:
        self._http.api_reset()

    def __repr__(self) -> str:
        return f"OAuth2Service(client_id='{self._client_id}', redirect_url='{self._redirect_url}')"
