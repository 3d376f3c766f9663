"""User endpoints."""

from typing import Any

from bunq_client.api.http_client import AsyncHttpClient, unwrap_response


async def list_users(http: AsyncHttpClient) -> dict[str, Any]:
    """Get the user object of the session, keyed by principal type."""
    limiter = http.limits.create("/user", "GET")
    response = await limiter.run(lambda: http.request("GET", "/user"))
    return unwrap_response(response)
