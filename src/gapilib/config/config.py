"""Configuration loading for BigQuery and Google API connection profiles."""

import tomllib
from pathlib import Path
from typing import Dict, Union, Optional, Any

from .paths import resolve_config_path


def load_profile(
    profile: str,
    path: Optional[Union[str, Path]] = None
) -> Dict[str, Any]:
    """
    Load a connection profile from connections.toml file.

    Args:
        profile: Name of the profile to load
        path: Optional explicit path to connections.toml file.
              If None, uses the gapilib configuration directory.

    Returns:
        Dictionary containing connection parameters for the profile

    Raises:
        FileNotFoundError: If connections.toml file is not found
        KeyError: If the specified profile doesn't exist in the file

    Example:
        >>> config = load_profile("dev")
        >>> config
        {'project_id': 'my-project', 'credentials_file': '~/keys/sa.json', ...}
    """
    config_file = resolve_config_path(path)

    if not config_file.exists():
        raise FileNotFoundError(
            f"gapilib configuration file not found at {config_file}. " +
            "Create a connections.toml file or see connections.toml.example for template."
        )

    with open(config_file, "rb") as f:
        all_profiles = tomllib.load(f)

    if profile not in all_profiles:
        available = ", ".join(all_profiles.keys())
        raise KeyError(
            f"Profile '{profile}' not found in {config_file}. " +
            f"Available profiles: {available}"
        )

    return dict(all_profiles[profile])


def list_profiles(path: Optional[Union[str, Path]] = None) -> list[str]:
    """
    List all available profiles in connections.toml file.

    Example:
        >>> list_profiles()
        ['default', 'dev', 'prod']
    """
    config_file = resolve_config_path(path)

    if not config_file.exists():
        return []

    with open(config_file, "rb") as f:
        all_profiles = tomllib.load(f)

    return list(all_profiles.keys())
