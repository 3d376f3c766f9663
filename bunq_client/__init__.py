"""
bunq API session client.

An async Python client that performs bunq's installation handshake, device
registration and signed session management, and keeps the session alive.

Example:
    ```python
    from bunq_client import BunqClient, JsonFileStorage

    async with BunqClient(JsonFileStorage("bunq.json")) as client:
        await client.run("sandbox_api_key", environment="SANDBOX")
        await client.install()
        await client.register_device("My Device")
        await client.register_session()

        users = await client.get_users(updated=True)
    ```
"""

from bunq_client.client import BunqClient
from bunq_client.config import BunqClientConfig
from bunq_client.exceptions import (
    APIError,
    BunqClientError,
    ConfigurationError,
    ErrorCode,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    SessionCreationError,
    SignatureVerificationError,
    UnsupportedPrincipalError,
)
from bunq_client.models.principal import OAuthPrincipal, Principal, PrincipalType
from bunq_client.models.session import InstallState
from bunq_client.storage.memory import JsonFileStorage, MemoryStorage
from bunq_client.storage.protocol import StorageInterface

__version__ = "0.1.0"

__all__ = [
    # Main client
    "BunqClient",
    "BunqClientConfig",
    # Storage
    "StorageInterface",
    "MemoryStorage",
    "JsonFileStorage",
    # Models
    "InstallState",
    "Principal",
    "OAuthPrincipal",
    "PrincipalType",
    # Exceptions
    "ErrorCode",
    "BunqClientError",
    "ConfigurationError",
    "NetworkError",
    "APIError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "SessionCreationError",
    "SignatureVerificationError",
    "UnsupportedPrincipalError",
]
