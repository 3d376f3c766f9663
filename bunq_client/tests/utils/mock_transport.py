"""
HTTP transport returning queued, optionally server-signed responses.
"""

import asyncio
import base64
import json
from collections import deque
from typing import Any

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from bunq_client.api.http_client import SERVER_SIGNATURE_HEADER


def sign_body(key: rsa.RSAPrivateKey, body: bytes) -> str:
    return base64.b64encode(key.sign(body, padding.PKCS1v15(), hashes.SHA256())).decode()


class MockTransport(httpx.AsyncBaseTransport):
    """Mock transport for testing."""

    def __init__(self, server_key: rsa.RSAPrivateKey | None = None) -> None:
        self._server_key = server_key
        self._responses: deque[dict[str, Any]] = deque()
        self.requests: list[httpx.Request] = []

    def add_response(
        self,
        status_code: int = httpx.codes.OK,
        json_data: dict[str, Any] | None = None,
        *,
        sign: bool = True,
        signature: str | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        """
        Queue a response.

        Args:
            status_code: HTTP status.
            json_data: JSON body.
            sign: Sign the body with the server key.
            signature: Explicit X-Bunq-Server-Signature value.
            error: Raise this instead of responding.
            gate: Hold the response until the event is set.
        """
        self._responses.append(
            {
                "status_code": status_code,
                "json_data": json_data,
                "sign": sign,
                "signature": signature,
                "error": error,
                "gate": gate,
            }
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Return next queued response."""
        self.requests.append(request)
        if not self._responses:
            return httpx.Response(
                httpx.codes.INTERNAL_SERVER_ERROR,
                content=b'{"Error": [{"error_description": "No mock response"}]}',
            )

        resp = self._responses.popleft()
        if resp["gate"] is not None:
            await resp["gate"].wait()
        if resp["error"] is not None:
            raise resp["error"]

        content = json.dumps(resp["json_data"] or {}).encode()
        headers = {}
        if resp["signature"] is not None:
            headers[SERVER_SIGNATURE_HEADER] = resp["signature"]
        elif resp["sign"] and self._server_key is not None:
            headers[SERVER_SIGNATURE_HEADER] = sign_body(self._server_key, content)

        return httpx.Response(status_code=resp["status_code"], content=content, headers=headers)
