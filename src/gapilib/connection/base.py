"""Base connector class with shared profile and secret handling."""

import os
from pathlib import Path
from typing import Optional, Any, Dict, Union
from pydantic import SecretStr, ValidationError
import keyring

from gapilib.bigquery.credentials import CredentialsJSON
from gapilib.config import load_profile


class BaseConnector:
    """Base class for gapilib connectors with TOML profile support and secret handling"""

    def __init__(self, profile: str, path: Optional[Union[str, Path]] = None, **kwargs: Any) -> None:
        """Initialize the connector with a configuration profile and optional parameter overrides"""
        self.credentials: Optional[CredentialsJSON] = None
        self.client_secret: Optional[SecretStr] = None

        self._cfg: Dict[str, Any] = load_profile(profile, path)
        self._cfg.update(kwargs)
        self._profile = profile
        self._process_credentials()
        self._process_client_secret()

    @property
    def profile(self) -> str:
        return self._profile

    @property
    def project_id(self) -> str:
        """Project from the profile, else the one in the service account key"""
        project_id = self._cfg.get("project_id")
        if not project_id and self.credentials is not None:
            project_id = self.credentials.project_id
        return project_id or ""

    def _process_credentials(self) -> None:
        """Load the service account key named by credentials_file, if any"""
        credentials_file = self._cfg.get("credentials_file")
        if not credentials_file:
            return

        key_path = self._get_credentials_path(credentials_file)

        try:
            self.credentials = CredentialsJSON.from_file(key_path)
        except (ValueError, ValidationError) as e:
            raise IOError(f"Failed to read service account key from {key_path}: {e}") from e

    def _get_credentials_path(self, credentials_file: str) -> Path:
        """Validate the service account key path"""
        key_path = Path(credentials_file).expanduser()

        # Only allow absolute paths or home directory expansion
        if not key_path.is_absolute():
            raise ValueError(
                f"Credentials file path must be absolute or use ~ for home directory. Got: {credentials_file}"
            )

        if not key_path.exists():
            raise FileNotFoundError(f"Service account key file not found: {key_path}")

        return key_path

    def _process_client_secret(self) -> None:
        """Retrieve the OAuth2 client secret from the profile, an environment variable or the keyring"""
        secret = self._cfg.get("client_secret")
        if secret:
            self.client_secret = SecretStr(secret)
            return

        secret_env_var = self._cfg.get("client_secret_env")
        if secret_env_var:
            env_secret = os.environ.get(secret_env_var)
            if env_secret:
                self.client_secret = SecretStr(env_secret)
                return

        use_keyring = self._cfg.get("use_keyring", False)
        keyring_service = self._cfg.get("keyring_service", f"gapilib.{self._profile}")
        keyring_username = self._cfg.get("keyring_username", self._cfg.get("client_id"))

        if use_keyring:
            if not keyring_username:
                raise ValueError(
                    "Keyring usage requires 'client_id' in profile or 'keyring_username' override."
                )

            keyring_secret = keyring.get_password(keyring_service, keyring_username)
            if keyring_secret:
                self.client_secret = SecretStr(keyring_secret)
