"""Service account credentials for BigQuery clients"""

import json
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, SecretStr


class CredentialsJSON(BaseModel):
    """Service account key as downloaded from the Google Cloud console

    The private key is kept as a SecretStr so it never shows up in reprs or logs.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = ""
    project_id: str = ""
    private_key_id: str = ""
    private_key: SecretStr = SecretStr("")
    client_email: str = ""
    client_id: str = ""
    auth_uri: str = ""
    token_uri: str = ""
    auth_provider_x509_cert_url: str = ""
    client_x509_cert_url: str = ""

    def is_empty(self) -> bool:
        """Whether no key material is set"""
        return not self.client_email and not self.private_key.get_secret_value()

    def to_info(self) -> dict[str, Any]:
        """Plain service account info dict, including the private key"""
        info = self.model_dump()
        info["private_key"] = self.private_key.get_secret_value()
        return info

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "CredentialsJSON":
        return cls.model_validate(json.loads(data))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CredentialsJSON":
        """Load a service account key file

        Raises:
            FileNotFoundError: If the key file doesn't exist
        """
        key_path = Path(path).expanduser()
        if not key_path.exists():
            raise FileNotFoundError(f"Service account key file not found: {key_path}")
        return cls.from_json(key_path.read_bytes())
