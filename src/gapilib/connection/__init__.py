"""Connection module exports."""

from .connection import BigQueryConnector, GoogleServiceConnector

__all__ = [
    "BigQueryConnector",
    "GoogleServiceConnector",
]
