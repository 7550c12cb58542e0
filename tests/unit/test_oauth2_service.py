"""Unit tests for the OAuth2 service with mocked flows and sessions."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, PropertyMock, patch

import pytest
import requests
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from pydantic import SecretStr

from gapilib.errors import GapiError
from gapilib.http.request import RequestConfig
from gapilib.oauth2.service import (
    AUTH_URL,
    DEFAULT_REDIRECT_URL,
    TOKEN_URL,
    OAuth2Service,
    credentials_to_token,
    token_to_credentials,
)
from gapilib.oauth2.token import MemoryTokenSource, Token

CLIENT_ID = "1234.apps.googleusercontent.com"


def _future(hours=1):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def _response(payload):
    response = requests.Response()
    response.status_code = 200
    response._content = json.dumps(payload).encode()
    return response


@pytest.fixture
def source():
    return MemoryTokenSource()


@pytest.fixture
def oauth2(source):
    return OAuth2Service(CLIENT_ID, "client-secret", token_source=source)


class TestConversions:
    """Tests for converting between tokens and google-auth credentials."""

    def test_token_to_credentials(self):
        """Test that google-auth gets a naive UTC expiry and split scopes."""
        cet = timezone(timedelta(hours=1))
        token = Token("access", "scope-a scope-b", "Bearer", None, "refresh", datetime(2024, 3, 1, 13, 0, tzinfo=cet))

        credentials = token_to_credentials(token, CLIENT_ID, "client-secret")

        assert credentials.token == "access"
        assert credentials.refresh_token == "refresh"
        assert credentials.scopes == ["scope-a", "scope-b"]
        assert credentials.expiry == datetime(2024, 3, 1, 12, 0)
        assert credentials.token_uri == TOKEN_URL
        assert credentials.client_secret == "client-secret"

    def test_credentials_to_token_keeps_previous_values(self):
        """Test that a refresh without refresh token or scope keeps the previous ones."""
        previous = Token(access_token="old", scope="scope-a", refresh_token="refresh")
        credentials = Credentials(token="new", expiry=datetime(2024, 3, 1, 12, 0))

        token = credentials_to_token(credentials, previous=previous)

        assert token.access_token == "new"
        assert token.refresh_token == "refresh"
        assert token.scope == "scope-a"
        assert token.token_type == "Bearer"
        assert token.expiry == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestConstruction:
    """Tests for OAuth2Service defaults and validation."""

    def test_defaults(self):
        service = OAuth2Service(CLIENT_ID, SecretStr("client-secret"))

        assert service.redirect_url == DEFAULT_REDIRECT_URL == "http://localhost:8080/oauth/redirect"
        assert service.refresh_margin == timedelta(seconds=60)
        assert isinstance(service.token_source, MemoryTokenSource)

    def test_client_id_required(self):
        with pytest.raises(GapiError) as exc_info:
            OAuth2Service("", "client-secret")

        assert str(exc_info.value) == "ClientID not provided"

    def test_secret_not_in_repr(self, oauth2):
        assert "client-secret" not in repr(oauth2)


class TestAuthorization:
    """Tests for the consent flow."""

    @patch("gapilib.oauth2.service.Flow")
    def test_authorize_url(self, mock_flow_cls, oauth2):
        flow = mock_flow_cls.from_client_config.return_value
        flow.authorization_url.return_value = ("https://accounts.google.com/o/oauth2/v2/auth?x=1", "state-1")

        url = oauth2.authorize_url("scope-a scope-b", access_type="offline", prompt="consent", state="state-1")

        assert url == "https://accounts.google.com/o/oauth2/v2/auth?x=1"
        client_config = mock_flow_cls.from_client_config.call_args[0][0]
        assert client_config["web"]["auth_uri"] == AUTH_URL
        assert client_config["web"]["token_uri"] == TOKEN_URL
        assert client_config["web"]["client_secret"] == "client-secret"
        assert mock_flow_cls.from_client_config.call_args.kwargs["scopes"] == ["scope-a", "scope-b"]
        assert mock_flow_cls.from_client_config.call_args.kwargs["state"] == "state-1"
        flow.authorization_url.assert_called_once_with(access_type="offline", prompt="consent")

    @patch("gapilib.oauth2.service.Flow")
    def test_get_token_from_code_saves_token(self, mock_flow_cls, source):
        """Test that the exchanged token goes to the token source."""
        flow = mock_flow_cls.from_client_config.return_value
        flow.authorization_url.return_value = ("https://accounts.google.com/o/oauth2/v2/auth", "s")
        flow.credentials = Credentials(
            token="access", refresh_token="refresh", scopes=["scope-a"], expiry=datetime(2024, 3, 1, 12, 0)
        )
        source = Mock(wraps=source)
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)

        oauth2.authorize_url("scope-a")
        token = oauth2.get_token_from_code(code="4/0A")

        flow.fetch_token.assert_called_once_with(code="4/0A")
        assert mock_flow_cls.from_client_config.call_count == 1
        assert token.access_token == "access"
        assert token.refresh_token == "refresh"
        source.set_token.assert_called_once_with(token, True)

    @patch("gapilib.oauth2.service.Flow")
    def test_get_token_from_redirect_url(self, mock_flow_cls, oauth2):
        flow = mock_flow_cls.from_client_config.return_value
        flow.credentials = Credentials(token="access")

        oauth2.get_token_from_code(authorization_response="http://localhost:8080/oauth/redirect?code=4/0A")

        flow.fetch_token.assert_called_once_with(
            authorization_response="http://localhost:8080/oauth/redirect?code=4/0A"
        )

    def test_get_token_without_code(self, oauth2):
        with pytest.raises(GapiError):
            oauth2.get_token_from_code()

    @patch("gapilib.oauth2.service.Flow")
    def test_refused_code(self, mock_flow_cls, oauth2):
        mock_flow_cls.from_client_config.return_value.fetch_token.side_effect = ValueError("invalid_grant")

        with pytest.raises(GapiError) as exc_info:
            oauth2.get_token_from_code(code="bad")

        assert "invalid_grant" in str(exc_info.value)

    @patch("gapilib.oauth2.service.InstalledAppFlow")
    def test_init_token_runs_local_server(self, mock_flow_cls, source):
        """Test that the local server listens on the redirect URL's host and port."""
        flow = mock_flow_cls.from_client_config.return_value
        flow.run_local_server.return_value = Credentials(token="access", refresh_token="refresh")
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source, redirect_url="http://127.0.0.1:9090/cb")

        token = oauth2.init_token("scope-a", access_type="offline", prompt="consent")

        flow.run_local_server.assert_called_once_with(
            host="127.0.0.1", port=9090, open_browser=True, access_type="offline", prompt="consent"
        )
        assert "installed" in mock_flow_cls.from_client_config.call_args[0][0]
        assert source.token() is token
        assert token.refresh_token == "refresh"

    @patch("wsgiref.simple_server.make_server")
    def test_init_token_redirects_to_loopback_root(self, mock_make_server, source):
        """Test the redirect URI a real installed app flow sends to Google."""

        def make_server(host, port, app, **kwargs):
            server = Mock(server_port=port)

            def handle_request():
                app.last_request_uri = f"http://{host}:{port}/?code=4/0A&state=s"

            server.handle_request.side_effect = handle_request
            return server

        mock_make_server.side_effect = make_server
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)
        credentials = Credentials(token="access", refresh_token="refresh")

        with patch.object(InstalledAppFlow, "fetch_token", autospec=True) as mock_fetch, patch.object(
            InstalledAppFlow, "credentials", new_callable=PropertyMock, return_value=credentials
        ):
            token = oauth2.init_token("scope-a", open_browser=False)

        flow = mock_fetch.call_args[0][0]
        assert flow.client_type == "installed"
        assert flow.redirect_uri == "http://localhost:8080/"
        assert mock_make_server.call_args[0][:2] == ("localhost", 8080)
        assert mock_fetch.call_args.kwargs["authorization_response"].startswith("https://localhost:8080/?code=4/0A")
        assert source.token() is token


class TestValidateToken:
    """Tests for validate_token."""

    def test_valid_token_is_returned(self, oauth2, source):
        token = Token(access_token="access", expiry=_future())
        source.set_token(token, False)

        assert oauth2.validate_token() is token

    def test_token_is_retrieved_from_source(self):
        """Test that a source without token in memory is asked to load it."""
        token = Token(access_token="access", expiry=_future())
        source = Mock()
        source.token.side_effect = [None, token]
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)

        assert oauth2.validate_token() is token
        source.retrieve_token.assert_called_once()

    def test_new_token_from_source(self):
        token = Token(access_token="access", expiry=_future())
        source = Mock()
        source.token.return_value = None
        source.new_token.return_value = token
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)

        assert oauth2.validate_token() is token
        source.set_token.assert_called_once_with(token, True)

    def test_no_token(self, oauth2):
        with pytest.raises(GapiError) as exc_info:
            oauth2.validate_token()

        assert "authorization flow" in str(exc_info.value)

    @patch("gapilib.oauth2.service.Request")
    def test_expiring_token_is_refreshed_and_saved(self, mock_request, source):
        """Test that a token expiring within the margin is refreshed and saved."""
        source = Mock(wraps=source)
        source.set_token(Token("old", "scope-a", "Bearer", None, "refresh", _future(hours=0) + timedelta(seconds=30)), False)
        source.set_token.reset_mock()
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)

        def fake_refresh(credentials, request):
            credentials.token = "new"
            credentials.expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)

        with patch.object(Credentials, "refresh", autospec=True, side_effect=fake_refresh):
            token = oauth2.validate_token()

        assert token.access_token == "new"
        assert token.refresh_token == "refresh"
        assert token.scope == "scope-a"
        source.set_token.assert_called_once_with(token, True)

    def test_expired_token_without_refresh_token(self, oauth2, source):
        source.set_token(Token(access_token="old", expiry=_future(hours=-1)), False)

        with pytest.raises(GapiError) as exc_info:
            oauth2.validate_token()

        assert "no refresh token" in str(exc_info.value)

    @patch("gapilib.oauth2.service.Request")
    def test_refresh_failure(self, mock_request, oauth2, source):
        source.set_token(Token(access_token="old", refresh_token="revoked", expiry=_future(hours=-1)), False)

        with patch.object(Credentials, "refresh", side_effect=RefreshError("invalid_grant")):
            with pytest.raises(GapiError) as exc_info:
                oauth2.validate_token()

        assert "invalid_grant" in str(exc_info.value)


class TestHttpRequest:
    """Tests for authorized requests."""

    @patch("gapilib.oauth2.service.AuthorizedSession")
    def test_request_with_valid_token(self, mock_session_cls, oauth2, source):
        source.set_token(Token(access_token="access", refresh_token="refresh", expiry=_future()), False)
        session = mock_session_cls.return_value
        session.request.return_value = _response({"siteEntry": []})

        result = oauth2.http_request(RequestConfig("GET", "https://www.googleapis.com/webmasters/v3/sites"))

        assert result.data == {"siteEntry": []}
        credentials = mock_session_cls.call_args[0][0]
        assert credentials.token == "access"
        session.close.assert_called_once()
        assert oauth2.api_call_count() == 1

    @patch("gapilib.oauth2.service.AuthorizedSession")
    def test_token_refreshed_by_session_is_saved(self, mock_session_cls, source):
        """Test that a token the session refreshed on the fly is handed back to the source."""
        source.set_token(Token(access_token="access", refresh_token="refresh", expiry=_future()), False)
        source = Mock(wraps=source)
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)

        def request(*args, **kwargs):
            mock_session_cls.call_args[0][0].token = "refreshed"
            return _response({})

        mock_session_cls.return_value.request.side_effect = request

        oauth2.http_request(RequestConfig("GET", "https://www.googleapis.com/webmasters/v3/sites"))

        saved, save = source.set_token.call_args[0]
        assert saved.access_token == "refreshed"
        assert saved.refresh_token == "refresh"
        assert save is True

    @patch("gapilib.oauth2.service.AuthorizedSession")
    def test_failed_token_save_keeps_response(self, mock_session_cls, source):
        """Test that a failing save of a refreshed token neither loses the response nor leaks the session."""
        source.set_token(Token(access_token="access", refresh_token="refresh", expiry=_future()), False)
        source = Mock(wraps=source)
        source.set_token.side_effect = GapiError("BigQuery save failed")
        oauth2 = OAuth2Service(CLIENT_ID, "client-secret", token_source=source)

        def request(*args, **kwargs):
            mock_session_cls.call_args[0][0].token = "refreshed"
            return _response({"siteEntry": []})

        mock_session_cls.return_value.request.side_effect = request

        result = oauth2.http_request(RequestConfig("GET", "https://www.googleapis.com/webmasters/v3/sites"))

        assert result.data == {"siteEntry": []}
        mock_session_cls.return_value.close.assert_called_once()
        assert source.set_token.call_args[0][0].access_token == "refreshed"

    @patch("gapilib.oauth2.service.AuthorizedSession")
    def test_request_error(self, mock_session_cls, oauth2, source):
        source.set_token(Token(access_token="access", expiry=_future()), False)
        response = _response({"error": {"message": "Quota exceeded"}})
        response.status_code = 429
        mock_session_cls.return_value.request.return_value = response

        with pytest.raises(GapiError):
            oauth2.http_request(RequestConfig("GET", "https://www.googleapis.com/webmasters/v3/sites"))

        mock_session_cls.return_value.close.assert_called_once()

    def test_api_reset(self, oauth2):
        oauth2._http._call_count = 3

        oauth2.api_reset()

        assert oauth2.api_call_count() == 0
