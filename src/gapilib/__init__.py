"""
gapilib - Python utilities for BigQuery and Google APIs

Code is organized in layers
- config/ and connection/ as the interface to profiles and secrets
- bigquery/ wraps the BigQuery client in table and query helpers
- http/ and oauth2/ send authorized requests and keep their tokens in BigQuery
- service.GoogleService is the client for a single Google API
"""

import logging

# Layer 1: Core connectivity
from gapilib.config import load_profile, list_profiles
from gapilib.connection import BigQueryConnector, GoogleServiceConnector
from gapilib.errors import GapiError, ErrorResponse

# Layer 2: BigQuery
from gapilib.bigquery import (
    BigQueryService,
    CredentialsJSON,
    QueryResult,
    SelectConfig,
    SQLConfig,
)

# Layer 3: HTTP and OAuth2
from gapilib.http import RequestConfig, HttpResult, HttpService
from gapilib.oauth2 import Token, TokenSource, TokenTable, OAuth2Service
from gapilib.service import GoogleService, OAuth2ServiceConfig

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    # Layer 1: Configuration & Connection
    "load_profile",
    "list_profiles",
    "BigQueryConnector",
    "GoogleServiceConnector",
    "GapiError",
    "ErrorResponse",
    # Layer 2: BigQuery
    "BigQueryService",
    "CredentialsJSON",
    "QueryResult",
    "SelectConfig",
    "SQLConfig",
    # Layer 3: HTTP and OAuth2
    "RequestConfig",
    "HttpResult",
    "HttpService",
    "Token",
    "TokenSource",
    "TokenTable",
    "OAuth2Service",
    "GoogleService",
    "OAuth2ServiceConfig",
]
