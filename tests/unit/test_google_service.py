"""Unit tests for GoogleService authorization modes."""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from gapilib.errors import ErrorResponse, GapiError
from gapilib.http.request import HttpResult, RequestConfig
from gapilib.oauth2.token import MemoryTokenSource
from gapilib.service import AuthorizationMode, GoogleService, OAuth2ServiceConfig, client_id_short

CLIENT_ID = "1234-abc.apps.googleusercontent.com"
SITES_URL = "https://www.googleapis.com/webmasters/v3/sites"


def _response(status_code, payload, reason="OK"):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = json.dumps(payload).encode()
    return response


def _oauth2_config(**kwargs):
    values = dict(api_name="searchconsole", client_id=CLIENT_ID, client_secret="secret", token_source=MemoryTokenSource())
    values.update(kwargs)
    return OAuth2ServiceConfig(**values)


class TestConstruction:
    """Tests for the constructors and their validation."""

    def test_with_oauth2(self):
        service = GoogleService.with_oauth2(_oauth2_config())

        assert service.authorization_mode == AuthorizationMode.OAUTH2
        assert service.api_name() == "searchconsole"
        assert service.oauth2_service.client_id == CLIENT_ID

    def test_with_oauth2_requires_config(self):
        with pytest.raises(GapiError) as exc_info:
            GoogleService.with_oauth2(None)

        assert str(exc_info.value) == "ServiceConfig must not be None"

    def test_with_oauth2_requires_client_id(self):
        with pytest.raises(GapiError) as exc_info:
            GoogleService.with_oauth2(_oauth2_config(client_id=""))

        assert str(exc_info.value) == "ClientID not provided"

    def test_with_api_key_requires_key(self):
        with pytest.raises(GapiError) as exc_info:
            GoogleService.with_api_key("maps", "")

        assert str(exc_info.value) == "ApiKey not provided"

    def test_with_access_token_requires_token(self):
        with pytest.raises(GapiError) as exc_info:
            GoogleService.with_access_token("bearer", None)

        assert str(exc_info.value) == "AccessToken not provided"

    def test_api_key_is_short_client_id(self):
        """Test that api_key returns the client id up to the first dot."""
        service = GoogleService.with_oauth2(_oauth2_config())

        assert service.api_key() == "1234-abc"
        assert client_id_short("no-dots") == "no-dots"

    @patch("gapilib.connection.GoogleServiceConnector")
    def test_from_profile(self, mock_connector_cls):
        service = GoogleService.from_profile("maps", path="/tmp/connections.toml", api_key="override")

        mock_connector_cls.assert_called_once_with("maps", path="/tmp/connections.toml", api_key="override")
        assert service is mock_connector_cls.return_value.service.return_value


class TestHttpRequest:
    """Tests for requests in each authorization mode."""

    @patch("gapilib.http.service.requests.Session.request")
    def test_api_key_is_added(self, mock_request):
        mock_request.return_value = _response(200, {"status": "OK"})
        service = GoogleService.with_api_key("maps", "AIza-test")

        result = service.get("https://maps.googleapis.com/maps/api/geocode/json", params={"address": "Utrecht"})

        assert result.data == {"status": "OK"}
        assert mock_request.call_args.kwargs["params"] == {"address": "Utrecht", "key": "AIza-test"}
        assert mock_request.call_args.kwargs["headers"] is None

    @patch("gapilib.http.service.requests.Session.request")
    def test_access_token_header(self, mock_request):
        mock_request.return_value = _response(200, {})
        service = GoogleService.with_access_token("bearer", "ya29.test")

        service.post(SITES_URL, body={"siteUrl": "https://example.com/"})

        assert mock_request.call_args.kwargs["headers"] == {"Authorization": "Bearer ya29.test"}
        assert mock_request.call_args.kwargs["json"] == {"siteUrl": "https://example.com/"}
        assert mock_request.call_args[0][0] == "POST"

    @patch("gapilib.http.service.requests.Session.request")
    def test_google_error_message(self, mock_request):
        """Test that the Google error payload message becomes the error message."""
        mock_request.return_value = _response(
            400, {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}}, "Bad Request"
        )
        service = GoogleService.with_api_key("maps", "AIza-bad")

        with pytest.raises(GapiError) as exc_info:
            service.get("https://maps.googleapis.com/maps/api/geocode/json")

        assert str(exc_info.value) == "API key not valid"
        assert exc_info.value.status_code == 400

    def test_oauth2_requests_go_through_oauth2_service(self):
        """Test that OAuth2 requests carry the error model to the OAuth2 service."""
        service = GoogleService.with_oauth2(_oauth2_config())
        service._oauth2_service = Mock()
        service._oauth2_service.http_request.return_value = Mock(spec=HttpResult)

        service.delete(SITES_URL + "/https%3A%2F%2Fexample.com%2F")

        config = service._oauth2_service.http_request.call_args[0][0]
        assert isinstance(config, RequestConfig)
        assert config.method == "DELETE"
        assert config.error_model is ErrorResponse

    @patch("gapilib.http.service.requests.Session.request")
    def test_verbs(self, mock_request):
        mock_request.return_value = _response(200, {})
        service = GoogleService.with_api_key("maps", "AIza-test")

        service.get(SITES_URL)
        service.post(SITES_URL)
        service.put(SITES_URL)
        service.patch(SITES_URL)
        service.delete(SITES_URL)

        assert [c[0][0] for c in mock_request.call_args_list] == ["GET", "POST", "PUT", "PATCH", "DELETE"]


class TestOAuth2Passthrough:
    """Tests for the OAuth2 only operations."""

    def test_passthroughs(self):
        service = GoogleService.with_oauth2(_oauth2_config())
        oauth2 = Mock()
        service._oauth2_service = oauth2

        service.authorize_url("scope-a", "offline", "consent", "state-1")
        service.init_token("scope-a")
        service.validate_token()
        service.get_token_from_code(code="4/0A")

        oauth2.authorize_url.assert_called_once_with("scope-a", "offline", "consent", "state-1")
        oauth2.init_token.assert_called_once_with("scope-a", None, None, None)
        oauth2.validate_token.assert_called_once_with()
        oauth2.get_token_from_code.assert_called_once_with("4/0A", None)

    def test_oauth2_operations_need_oauth2_mode(self):
        service = GoogleService.with_api_key("maps", "AIza-test")

        with pytest.raises(GapiError) as exc_info:
            service.validate_token()

        assert "not authorized with OAuth2" in str(exc_info.value)


class TestCallCount:
    """Tests for api_call_count and api_reset."""

    @patch("gapilib.http.service.requests.Session.request")
    def test_count_and_reset(self, mock_request):
        mock_request.return_value = _response(200, {})
        service = GoogleService.with_api_key("maps", "AIza-test")

        service.get(SITES_URL)
        service.get(SITES_URL)
        assert service.api_call_count() == 2

        service.api_reset()
        assert service.api_call_count() == 0

    def test_count_in_oauth2_mode(self):
        service = GoogleService.with_oauth2(_oauth2_config())

        assert service.api_call_count() == 0
