"""OAuth2 tokens, their BigQuery store and the authorization flow"""

from gapilib.oauth2.token import Token, TokenSource, MemoryTokenSource
from gapilib.oauth2.token_table import (
    DEFAULT_TOKEN_TABLE,
    TokenTable,
    build_token_merge,
    get_token,
    save_token,
)
from gapilib.oauth2.service import (
    AUTH_URL,
    TOKEN_URL,
    DEFAULT_REDIRECT_URL,
    DEFAULT_REFRESH_MARGIN,
    OAuth2Service,
    credentials_to_token,
    token_to_credentials,
)

__all__ = [
    "Token",
    "TokenSource",
    "MemoryTokenSource",
    "DEFAULT_TOKEN_TABLE",
    "TokenTable",
    "build_token_merge",
    "get_token",
    "save_token",
    "AUTH_URL",
    "TOKEN_URL",
    "DEFAULT_REDIRECT_URL",
    "DEFAULT_REFRESH_MARGIN",
    "OAuth2Service",
    "credentials_to_token",
    "token_to_credentials",
]
