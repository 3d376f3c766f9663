"""
Async HTTP client for the bunq API.

Signs request bodies, attaches installation or session tokens, verifies
server signatures and maps error responses to exceptions.
"""

import json as jsonlib
import uuid
from enum import StrEnum
from typing import Any

import httpx
import structlog
from cryptography.hazmat.primitives.asymmetric import rsa

from bunq_client.config import BunqClientConfig
from bunq_client.core.rate_limiter import RequestLimitFactory
from bunq_client.crypto.signing import SignatureCodec
from bunq_client.exceptions import (
    APIError,
    ConfigurationError,
    ErrorCode,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    SignatureVerificationError,
)
from bunq_client.storage.session_store import SessionStore

logger = structlog.get_logger(__name__)

CLIENT_AUTHENTICATION_HEADER = "X-Bunq-Client-Authentication"
CLIENT_SIGNATURE_HEADER = "X-Bunq-Client-Signature"
SERVER_SIGNATURE_HEADER = "X-Bunq-Server-Signature"

SENSITIVE_KEYS = frozenset(
    {
        "secret",
        "token",
        "client_public_key",
        "server_public_key",
        "private_key",
    }
)


def sanitize_for_log(data: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive fields from a dict before logging.

    Recursively sanitizes nested dictionaries and lists.

    Args:
        data: Dictionary that may contain sensitive values.

    Returns:
        Copy with sensitive values replaced by "***".
    """
    result = {}
    for key, value in data.items():
        if key in SENSITIVE_KEYS:
            result[key] = "***"
        elif isinstance(value, dict):
            result[key] = sanitize_for_log(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_log(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            result[key] = value
    return result


def unwrap_response(data: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten a ``{"Response": [{"Id": ...}, {"Token": ...}]}`` envelope.

    Returns:
        A single dict merging every item of the Response list.
    """
    merged: dict[str, Any] = {}
    for item in data.get("Response", []):
        merged.update(item)
    return merged


class AuthToken(StrEnum):
    """Which token, if any, authenticates a request."""

    NONE = "none"
    INSTALLATION = "installation"
    SESSION = "session"


class AsyncHttpClient:
    """Async HTTP client for the bunq API."""

    def __init__(
        self,
        config: BunqClientConfig,
        store: SessionStore,
        codec: SignatureCodec,
        *,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Client configuration.
            store: Handshake state providing tokens and the server key.
            codec: Signs bodies and verifies server signatures.
            base_url: API base URL for the selected environment.
            transport: Optional transport for testing (mock transport).
        """
        self._config = config
        self._store = store
        self._codec = codec
        self._base_url = base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.limits = RequestLimitFactory(config)

    async def __aenter__(self) -> "AsyncHttpClient":
        self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def config(self) -> BunqClientConfig:
        return self._config

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url.rstrip("/") + "/",
                timeout=self._config.timeout,
                transport=self._transport,
                headers={
                    "Cache-Control": "no-cache",
                    "User-Agent": self._config.user_agent,
                    "X-Bunq-Language": self._config.language,
                    "X-Bunq-Region": self._config.region,
                    "X-Bunq-Geolocation": self._config.geolocation,
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        auth: AuthToken = AuthToken.SESSION,
        sign: bool = True,
        verify: bool = True,
    ) -> dict[str, Any]:
        """
        Make an API request.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: Path relative to the API base URL, or an absolute URL.
            json: JSON body for POST/PUT requests.
            params: Query parameters.
            auth: Token to send in X-Bunq-Client-Authentication.
            sign: Whether to sign the body with the client key.
            verify: Whether to verify the server signature once installed.

        Returns:
            Response JSON data.

        Raises:
            APIError: If the API returns an error status.
            NetworkError: If the request could not be completed.
            SignatureVerificationError: If the server signature is invalid.
            ConfigurationError: If the requested token is not available.
        """
        body = jsonlib.dumps(json).encode("utf-8") if json is not None else b""
        headers = {
            "X-Bunq-Client-Request-Id": str(uuid.uuid4()),
            "Content-Type": "application/json",
        }
        token = self._token_for(auth)
        if token is not None:
            headers[CLIENT_AUTHENTICATION_HEADER] = token
        if sign:
            headers[CLIENT_SIGNATURE_HEADER] = self._codec.sign(body)

        client = self._ensure_client()
        url = endpoint if "://" in endpoint else endpoint.lstrip("/")
        logger.debug(
            "Sending request",
            method=method,
            endpoint=endpoint,
            signed=sign,
            body=sanitize_for_log(json) if json else None,
        )
        try:
            response = await client.request(
                method=method,
                url=url,
                content=body,
                params=params,
                headers=headers,
            )
        except httpx.TransportError as e:
            msg = f"Request to {endpoint} failed"
            raise NetworkError(msg, endpoint=endpoint, error_type=type(e).__name__) from e

        if response.status_code >= 400:
            self._raise_api_error(response, endpoint)

        installation = self._store.installation
        if verify and installation is not None:
            self._verify_response(response, endpoint, installation.server_public_key)

        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                "Invalid JSON response from API",
                status_code=response.status_code,
                endpoint=endpoint,
                response=response,
            ) from e

    def _token_for(self, auth: AuthToken) -> str | None:
        if auth is AuthToken.NONE:
            return None
        if auth is AuthToken.INSTALLATION:
            if self._store.installation is None:
                msg = "No installation token, call install() first"
                raise ConfigurationError(msg, error_code=ErrorCode.MISSING_INSTALLATION)
            return self._store.installation.token
        if self._store.session is None:
            msg = "No session token, call register_session() first"
            raise ConfigurationError(msg)
        return self._store.session.token

    def _verify_response(
        self, response: httpx.Response, endpoint: str, server_public_key: rsa.RSAPublicKey
    ) -> None:
        signature = response.headers.get(SERVER_SIGNATURE_HEADER)
        if not signature:
            msg = "Response is missing the server signature"
            raise SignatureVerificationError(msg, endpoint=endpoint)
        if not self._codec.verify(response.content, signature, server_public_key):
            msg = "Server signature verification failed"
            logger.error(msg, endpoint=endpoint)
            raise SignatureVerificationError(msg, endpoint=endpoint)

    @staticmethod
    def _raise_api_error(response: httpx.Response, endpoint: str) -> None:
        description = None
        try:
            errors = response.json().get("Error") or []
            if errors:
                description = errors[0].get("error_description")
        except (ValueError, AttributeError):
            pass

        status = response.status_code
        msg = description or f"HTTP {status}"
        logger.debug("API returned an error", endpoint=endpoint, status=status)
        details = {"endpoint": endpoint, "description": description, "response": response}
        if status == 404:
            raise NotFoundError(msg, **details)
        if status == 429:
            raise RateLimitError(msg, **details)
        if status >= 500:
            raise ServerError(msg, status_code=status, **details)
        raise APIError(msg, status_code=status, **details)
