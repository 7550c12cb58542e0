"""BigQuery and Google API connection management with profile support."""

from datetime import timedelta
from google.cloud import bigquery
from pathlib import Path
from typing import Optional, Any, Literal, Union
from pydantic import SecretStr

from gapilib.bigquery.service import BigQueryService
from gapilib.errors import GapiError
from gapilib.oauth2.token_table import DEFAULT_TOKEN_TABLE, TokenTable
from gapilib.service import GoogleService, OAuth2ServiceConfig

from .base import BaseConnector


class BigQueryConnector(BaseConnector):
    """
    BigQuery connection manager with TOML profile support and context manager protocol.

    This class loads the project and service account key from a TOML configuration
    file and manages the client lifecycle. It implements the context manager protocol
    for automatic resource cleanup.

    Args:
        profile: Name of the profile to load from connections.toml
        path: Optional explicit path to connections.toml
        **kwargs: Additional parameters to override profile settings

    Example:
        >>> with BigQueryConnector(profile="default") as client:
        ...     rows = client.query("SELECT 1 AS x").result()

        >>> # Override project from profile
        >>> service = BigQueryConnector(profile="default", project_id="other-project").service()
    """

    def __init__(self, profile: str, path: Optional[Union[str, Path]] = None, **kwargs: Any) -> None:
        # Initialize base class (loads profile, reads the service account key)
        super().__init__(profile, path, **kwargs)

        # Service initialized lazily
        self._service: Optional[BigQueryService] = None

    def service(self) -> BigQueryService:
        """
        Get or create the BigQueryService for this profile.

        Raises:
            GapiError: If the profile has no service account key or project
        """
        if self._service is None:
            service = BigQueryService(self.credentials, self.project_id)
            service.validate()
            self._service = service
        return self._service

    def connect(self) -> bigquery.Client:
        """Get the BigQuery client, creating it if needed"""
        return self.service().client

    def close(self) -> None:
        """Close the client, releasing resources."""
        if self._service:
            self._service.close()
            self._service = None

    def __enter__(self) -> bigquery.Client:
        return self.connect()

    def __exit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any
    ) -> Literal[False]:
        """
        Context manager exit: close client.

        Always returns False to propagate any exceptions.
        """
        self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._service else "not connected"
        return f"BigQueryConnector(profile='{self._profile}', {status})"


class GoogleServiceConnector(BigQueryConnector):
    """
    Google API service manager with TOML profile support.

    The authorization mode follows the profile: access_token, then api_key, else
    OAuth2 with client_id and client secret. In OAuth2 mode the token is kept in
    the token table of the profile's BigQuery project.

    Example:
        >>> connector = GoogleServiceConnector(profile="searchconsole")
        >>> service = connector.service()
        >>> service.validate_token()
    """

    def __init__(self, profile: str, path: Optional[Union[str, Path]] = None, **kwargs: Any) -> None:
        super().__init__(profile, path, **kwargs)

        self._google_service: Optional[GoogleService] = None

    @property
    def api_name(self) -> str:
        return self._cfg.get("api_name", self._profile)

    def bigquery_service(self) -> BigQueryService:
        return super().service()

    def token_table(self) -> TokenTable:
        """Token source on the profile's BigQuery project"""
        client_id = self._cfg.get("client_id")
        if not client_id:
            raise GapiError("ClientID not provided")

        return TokenTable(
            self.api_name,
            client_id,
            self.bigquery_service(),
            table=self._cfg.get("token_table", DEFAULT_TOKEN_TABLE),
        )

    def service(self) -> GoogleService:  # type: ignore[override]
        """
        Get or create the GoogleService for this profile.

        Raises:
            GapiError: If the profile lacks what its authorization mode needs
        """
        if self._google_service is None:
            self._google_service = self._create_service()
        return self._google_service

    def _create_service(self) -> GoogleService:
        if "access_token" in self._cfg:
            return GoogleService.with_access_token(self.api_name, self._cfg["access_token"])

        if "api_key" in self._cfg:
            return GoogleService.with_api_key(self.api_name, self._cfg["api_key"])

        refresh_margin = self._cfg.get("refresh_margin")
        config = OAuth2ServiceConfig(
            api_name=self.api_name,
            client_id=self._cfg.get("client_id", ""),
            client_secret=self.client_secret or SecretStr(""),
            token_source=self.token_table(),
            redirect_url=self._cfg.get("redirect_url"),
            refresh_margin=timedelta(seconds=refresh_margin) if refresh_margin is not None else None,
        )
        return GoogleService.with_oauth2(config)

    def connect(self) -> bigquery.Client:
        """Get the client of the profile's BigQuery project"""
        return self.bigquery_service().client

    def close(self) -> None:
        self._google_service = None
        super().close()

    def __repr__(self) -> str:
        status = "active" if self._google_service else "inactive"
        return f"GoogleServiceConnector(profile='{self._profile}', api_name='{self.api_name}', {status})"
