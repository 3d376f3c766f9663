"""
Credential password-IP requests.

These live on a separate host and are used outside the installation
lifecycle, so they are unsigned, unverified and unauthenticated.
"""

from typing import Any

from bunq_client.api.http_client import AsyncHttpClient, AuthToken, unwrap_response

_PATH = "/credential-password-ip-request"


async def create_credential_request(http: AsyncHttpClient) -> dict[str, Any]:
    """
    Create a new credential password-IP request.

    Returns:
        The UserCredentialPasswordIpRequest object.
    """
    url = http.config.credentials_api_url.rstrip("/") + _PATH
    limiter = http.limits.create(_PATH, "POST")
    response = await limiter.run(
        lambda: http.request(
            "POST", url, json={}, auth=AuthToken.NONE, sign=False, verify=False
        )
    )
    return unwrap_response(response)["UserCredentialPasswordIpRequest"]


async def get_credential_request(http: AsyncHttpClient, uuid: str) -> dict[str, Any]:
    """
    Check whether a credential password-IP request has been accepted.

    Args:
        http: Configured async HTTP client.
        uuid: UUID of the request returned on creation.

    Returns:
        The UserCredentialPasswordIpRequest object.
    """
    url = f"{http.config.credentials_api_url.rstrip('/')}{_PATH}/{uuid}"
    limiter = http.limits.create(_PATH, "GET")
    response = await limiter.run(
        lambda: http.request("GET", url, auth=AuthToken.NONE, sign=False, verify=False)
    )
    return unwrap_response(response)["UserCredentialPasswordIpRequest"]
