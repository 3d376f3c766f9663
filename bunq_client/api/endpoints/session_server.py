"""Session endpoints."""

from typing import Any

from bunq_client.api.http_client import AsyncHttpClient, AuthToken, unwrap_response


async def create_session_server(http: AsyncHttpClient, secret: str) -> dict[str, Any]:
    """
    Open a new session for the installation.

    Args:
        http: Configured async HTTP client.
        secret: The bunq API key.

    Returns:
        Flattened response with Id, Token and the user object keyed by type.
    """
    limiter = http.limits.create("/session-server", "POST")
    response = await limiter.run(
        lambda: http.request(
            "POST",
            "/session-server",
            json={"secret": secret},
            auth=AuthToken.INSTALLATION,
        )
    )
    return unwrap_response(response)


async def delete_session(http: AsyncHttpClient, session_id: int) -> None:
    """Close a session on the server."""
    limiter = http.limits.create("/session/{id}", "DELETE")
    await limiter.run(lambda: http.request("DELETE", f"/session/{session_id}"))
