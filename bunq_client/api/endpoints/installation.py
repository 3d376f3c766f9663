"""Installation endpoint."""

from typing import Any

from bunq_client.api.http_client import AsyncHttpClient, AuthToken, unwrap_response


async def create_installation(http: AsyncHttpClient, public_key_pem: str) -> dict[str, Any]:
    """
    Exchange public keys with the server.

    No server key is known yet, so the call is neither signed nor verified.

    Args:
        http: Configured async HTTP client.
        public_key_pem: Client public key in PEM format.

    Returns:
        Flattened response with Id, Token and ServerPublicKey.
    """
    limiter = http.limits.create("/installation", "POST")
    response = await limiter.run(
        lambda: http.request(
            "POST",
            "/installation",
            json={"client_public_key": public_key_pem},
            auth=AuthToken.NONE,
            sign=False,
            verify=False,
        )
    )
    return unwrap_response(response)
