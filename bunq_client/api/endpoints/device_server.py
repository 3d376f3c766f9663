"""Device registration endpoint."""

from collections.abc import Sequence

from bunq_client.api.http_client import AsyncHttpClient, AuthToken, unwrap_response


async def create_device_server(
    http: AsyncHttpClient,
    *,
    description: str,
    secret: str,
    permitted_ips: Sequence[str] = (),
) -> int:
    """
    Register this installation as a device.

    Args:
        http: Configured async HTTP client.
        description: Human readable device name.
        secret: The bunq API key.
        permitted_ips: Source addresses allowed to use the API key.

    Returns:
        The new device id.
    """
    limiter = http.limits.create("/device-server", "POST")
    response = await limiter.run(
        lambda: http.request(
            "POST",
            "/device-server",
            json={
                "description": description,
                "secret": secret,
                "permitted_ips": list(permitted_ips),
            },
            auth=AuthToken.INSTALLATION,
        )
    )
    return unwrap_response(response)["Id"]["id"]
