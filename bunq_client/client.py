"""
bunq client facade.

This is the main entry point for users of the library. It wires the key
manager, session store, transport and services together and exposes the
installation → device → session lifecycle.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Self

import httpx
import structlog
from cryptography.hazmat.primitives.asymmetric import rsa

from bunq_client.api.endpoints.credential_password_ip import (
    create_credential_request,
    get_credential_request,
)
from bunq_client.api.endpoints.session_server import delete_session
from bunq_client.api.http_client import AsyncHttpClient, AuthToken
from bunq_client.config import SANDBOX, BunqClientConfig
from bunq_client.crypto.key_manager import KeyManager
from bunq_client.crypto.signing import SignatureCodec
from bunq_client.crypto.storage_cipher import StorageCipher
from bunq_client.exceptions import BunqClientError
from bunq_client.models.principal import PrincipalType
from bunq_client.models.session import InstallState
from bunq_client.services.expiry_scheduler import ExpiryScheduler
from bunq_client.services.installer import Installer
from bunq_client.services.session_manager import SessionManager
from bunq_client.storage.memory import MemoryStorage
from bunq_client.storage.protocol import StorageInterface
from bunq_client.storage.session_store import SessionStore, utc_now


class BunqClient:
    """
    Async client for the bunq API.

    Example:
        ```python
        async with BunqClient(JsonFileStorage("bunq.json")) as client:
            await client.run(api_key, ["1.2.3.4"], environment="SANDBOX")
            await client.install()
            await client.register_device("My server")
            await client.register_session()

            users = await client.get_users()
        ```

    Args:
        storage: Where key pair and session state are persisted.
            Defaults to in-memory storage.
        config: Client configuration. Uses defaults if not provided.
        logger: Optional logger passed to every component.
        transport: Optional httpx transport for testing (mock transport).
        clock: Returns the current aware UTC time; for testing.
    """

    def __init__(
        self,
        storage: StorageInterface | None = None,
        config: BunqClientConfig | None = None,
        *,
        logger: Any = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or BunqClientConfig()
        self._storage = storage if storage is not None else MemoryStorage()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._transport = transport

        prefix = self._config.storage_key_prefix
        self.store = SessionStore(
            self._storage, storage_key=f"{prefix}_SESSION", clock=clock or utc_now
        )
        self.key_manager = KeyManager(
            self._storage,
            key_size=self._config.key_size,
            storage_key=f"{prefix}_PRIVATE_KEY_PEM",
        )
        self._keep_alive = True
        self.codec = SignatureCodec(self._current_private_key)
        self.scheduler = ExpiryScheduler(
            self.store,
            self._refresh_on_expiry,
            is_enabled=lambda: self._keep_alive,
            ci_env_var=self._config.ci_env_var,
            logger=self._logger,
        )

        self._http: AsyncHttpClient | None = None
        self._installer: Installer | None = None
        self._session_manager: SessionManager | None = None
        self._run_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        await self.close()

    @property
    def config(self) -> BunqClientConfig:
        return self._config

    @property
    def http(self) -> AsyncHttpClient:
        if self._http is None:
            msg = "Client not started. Call run() first."
            raise RuntimeError(msg)
        return self._http

    @property
    def state(self) -> InstallState:
        return self.store.state

    @property
    def keep_alive(self) -> bool:
        return self._keep_alive

    def set_keep_alive(self, keep_alive: bool) -> None:
        """
        Enable or disable automatic session renewal.

        Disabling cancels any armed renewal timer; enabling arms one for the
        current session.
        """
        self._keep_alive = keep_alive
        if not keep_alive:
            self.scheduler.disarm()
        elif self._http is not None:
            self.scheduler.arm()

    async def run(
        self,
        api_key: str,
        permitted_ips: Sequence[str] | None = None,
        environment: str = SANDBOX,
        encryption_key: str | None = None,
    ) -> None:
        """
        Load stored state and prepare the client for the given API key.

        Args:
            api_key: bunq API key.
            permitted_ips: Source addresses the device may call from.
            environment: "SANDBOX" or "PRODUCTION".
            encryption_key: When given, the stored session unit is encrypted
                with AES-GCM and the private key PEM with a passphrase.
                Stored state written without it, or with another key, is
                discarded.

        Raises:
            ConfigurationError: If the environment is unknown.
        """
        base_url = self._config.api_url_for(environment)
        self._logger.debug("Starting bunq client", environment=environment)

        async with self._run_lock:
            await self._shutdown()

            cipher = None
            if encryption_key:
                cipher = await asyncio.to_thread(
                    StorageCipher,
                    encryption_key,
                    salt=self._config.storage_key_prefix.encode("utf-8"),
                )
            self.store.cipher = cipher
            self.key_manager.set_passphrase(
                encryption_key.encode("utf-8") if encryption_key else None
            )

            await self.store.load(api_key, environment)
            self.store.permitted_ips = tuple(permitted_ips or ())
            await self.key_manager.ensure_key_pair()

            self._http = AsyncHttpClient(
                self._config,
                self.store,
                self.codec,
                base_url=base_url,
                transport=self._transport,
            )
            self._installer = Installer(
                self._http,
                self.store,
                self.key_manager,
                scheduler=self.scheduler,
                logger=self._logger,
            )
            self._session_manager = SessionManager(
                self._http, self.store, scheduler=self.scheduler, logger=self._logger
            )

            self.scheduler.arm()

    async def install(self) -> bool:
        """Exchange public keys with bunq. No-op once installed."""
        return await self._require_installer().install()

    async def register_device(
        self,
        description: str = "My Device",
        permitted_ips: Sequence[str] | None = None,
    ) -> bool:
        """
        Register this installation as a device. No-op once registered.

        Raises:
            APIError: If bunq rejects the device; on a 400 the
                installation is reset and install() must be called again.
        """
        return await self._require_installer().register_device(description, permitted_ips)

    async def register_session(self) -> bool:
        """Create a session if there is no valid one."""
        return await self._require_session_manager().register_session()

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make a signed, session-authenticated API request.

        The session is re-validated (and renewed if needed) first.
        """
        await self.register_session()
        limiter = self.http.limits.create(endpoint, method)
        return await limiter.run(
            lambda: self.http.request(
                method, endpoint, json=json, params=params, auth=AuthToken.SESSION
            )
        )

    async def get_users(self, updated: bool = False) -> dict[str, dict[str, Any]]:
        """
        Get the principals of the session keyed by type.

        Args:
            updated: Fetch the user list from bunq first.
        """
        if updated:
            return await self._require_session_manager().refresh_principals()
        return self.store.principals

    async def get_user(
        self, principal_type: PrincipalType | str, updated: bool = False
    ) -> dict[str, Any] | None:
        """Get one principal of the session by type, e.g. "UserPerson"."""
        users = await self.get_users(updated)
        return users.get(PrincipalType(principal_type).value)

    async def create_credentials(self) -> dict[str, Any]:
        """Create a credential password-IP request."""
        return await create_credential_request(self.http)

    async def check_credential_status(self, uuid: str) -> dict[str, Any]:
        """Check the status of a credential password-IP request."""
        return await get_credential_request(self.http, uuid)

    async def destroy_session(self) -> None:
        """
        Log out: close the remote session, then wipe installation, device,
        session and key pair.
        """
        if self._http is not None and self.store.has_valid_session():
            try:
                await delete_session(self._http, self.store.session.session_id)
            except BunqClientError as e:
                self._logger.warning("Remote session delete failed", error_type=type(e).__name__)

        self.scheduler.disarm()
        await self.store.destroy()
        await self.key_manager.remove()

    async def destroy_api_session(self) -> None:
        """Drop the current session but keep installation and device."""
        self.scheduler.disarm()
        await self.store.destroy_api_session()

    async def close(self) -> None:
        """Stop the renewal timer and release the transport."""
        async with self._run_lock:
            await self._shutdown()
            self._logger.debug("Client closed")

    async def _shutdown(self) -> None:
        await self.scheduler.aclose()
        if self._http is not None:
            await self._http.close()
            self._http = None
        self._installer = None
        self._session_manager = None

    async def _refresh_on_expiry(self) -> None:
        await self.get_users(updated=True)

    def _current_private_key(self) -> rsa.RSAPrivateKey | None:
        key_pair = self.key_manager.key_pair
        return key_pair.private_key if key_pair is not None else None

    def _require_installer(self) -> Installer:
        if self._installer is None:
            msg = "Client not started. Call run() first."
            raise RuntimeError(msg)
        return self._installer

    def _require_session_manager(self) -> SessionManager:
        if self._session_manager is None:
            msg = "Client not started. Call run() first."
            raise RuntimeError(msg)
        return self._session_manager
