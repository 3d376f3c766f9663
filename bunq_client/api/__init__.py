"""
bunq API client layer.

Provides signed async HTTP communication with the bunq API.
"""

from bunq_client.api.http_client import (
    AsyncHttpClient,
    AuthToken,
    sanitize_for_log,
    unwrap_response,
)

__all__ = ["AsyncHttpClient", "AuthToken", "sanitize_for_log", "unwrap_response"]
