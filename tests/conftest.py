"""Pytest configuration and shared fixtures for integration tests."""

import tomllib
from typing import Dict, Any

import pytest
from gapilib.config import CONF_DIR


def _load_test_config() -> Dict[str, Any]:
    """
    Load test configuration from test_config.toml in the gapilib config directory.

    Returns:
        Dictionary with test configuration settings, empty when the file is missing
    """
    test_config_path = CONF_DIR / "test_config.toml"

    if not test_config_path.exists():
        return {}

    with open(test_config_path, "rb") as f:
        config = tomllib.load(f)

    return config.get("test", {})


# Load test config once at module level
_TEST_CONFIG = _load_test_config()


@pytest.fixture(scope="session")
def test_profile() -> str:
    """BigQuery profile to use for integration tests."""
    profile = _TEST_CONFIG.get("profile")
    if not profile:
        pytest.skip(
            f"Integration tests need 'profile' in the [test] section of {CONF_DIR / 'test_config.toml'}"
        )
    return profile


@pytest.fixture(scope="session")
def test_oauth2_profile() -> str:
    """Optional OAuth2 profile whose token is already stored in the token table."""
    profile = _TEST_CONFIG.get("oauth2_profile")
    if not profile:
        pytest.skip("OAuth2 test profile 'oauth2_profile' not configured in test_config.toml")
    return profile


@pytest.fixture(scope="session")
def test_dataset() -> str:
    """Dataset to use for integration tests."""
    return _TEST_CONFIG.get("dataset", "gapilib_test")


@pytest.fixture(scope="session")
def test_write_table() -> str:
    """Table name for write tests (will be created/dropped)."""
    return _TEST_CONFIG.get("write_table", "test_write_table")
