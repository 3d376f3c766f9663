"""
Installation handshake.

Drives UNINSTALLED → INSTALLED → DEVICE_REGISTERED: first the client and
server exchange public keys, then the installation is bound to a device and
an allow-list of source addresses.
"""

from collections.abc import Sequence
from typing import Any

import structlog

from bunq_client.api.endpoints.device_server import create_device_server
from bunq_client.api.endpoints.installation import create_installation
from bunq_client.api.http_client import AsyncHttpClient
from bunq_client.crypto.key_manager import KeyManager
from bunq_client.crypto.signing import load_public_key
from bunq_client.exceptions import APIError, ConfigurationError, ErrorCode
from bunq_client.models.session import (
    DeviceRegistration,
    Installation,
    InstallState,
    parse_timestamp,
)
from bunq_client.services.expiry_scheduler import ExpiryScheduler
from bunq_client.storage.session_store import SessionStore


class Installer:
    """
    Performs and persists the installation and device registration steps.

    Both steps are idempotent: once a stage is recorded in the session store
    the corresponding call returns without touching the network.
    """

    def __init__(
        self,
        http_client: AsyncHttpClient,
        store: SessionStore,
        key_manager: KeyManager,
        *,
        scheduler: ExpiryScheduler | None = None,
        logger: Any = None,
    ) -> None:
        """
        Args:
            http_client: HTTP client for API requests.
            store: Session store holding handshake state.
            key_manager: Owner of the client key pair.
            scheduler: Disarmed when a rejection discards the session.
            logger: Optional logger; defaults to a structlog logger for this module.
        """
        self._http = http_client
        self._store = store
        self._key_manager = key_manager
        self._scheduler = scheduler
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def state(self) -> InstallState:
        return self._store.state

    async def install(self) -> bool:
        """
        Exchange public keys with the server.

        Returns:
            True once installed.

        Raises:
            ConfigurationError: If no client key pair has been set up.
        """
        if self._store.is_installed:
            return True

        key_pair = self._key_manager.key_pair
        if key_pair is None:
            msg = "No client key pair is set up yet, call ensure_key_pair() first"
            raise ConfigurationError(msg, error_code=ErrorCode.MISSING_KEY_PAIR)

        self._logger.debug("Installing client public key")
        response = await create_installation(self._http, key_pair.public_key_pem)

        token = response["Token"]
        server_public_key_pem = response["ServerPublicKey"]["server_public_key"]
        self._store.installation = Installation(
            server_public_key_pem=server_public_key_pem,
            server_public_key=load_public_key(server_public_key_pem),
            token=token["token"],
            created_at=parse_timestamp(token["created"]),
            updated_at=parse_timestamp(token["updated"]),
        )
        await self._store.save()
        self._logger.debug("Installation stored")
        return True

    async def register_device(
        self,
        description: str = "My Device",
        permitted_ips: Sequence[str] | None = None,
    ) -> bool:
        """
        Register this installation as a device.

        A 400 rejection means the server no longer accepts this
        installation; it is wiped and a new key pair generated so the next
        install() starts from scratch. The error is re-raised either way.

        Args:
            description: Device name shown in the bunq app.
            permitted_ips: Allowed source addresses; defaults to the ones
                given to the client.

        Returns:
            True once registered.

        Raises:
            APIError: If the server rejects the registration.
            NetworkError: If the request could not be completed.
        """
        if self._store.is_device_registered:
            return True

        if permitted_ips is None:
            permitted_ips = self._store.permitted_ips
        try:
            device_id = await create_device_server(
                self._http,
                description=description,
                secret=self._store.api_key or "",
                permitted_ips=permitted_ips,
            )
        except APIError as e:
            if _rejects_installation(e):
                self._logger.error(
                    "Device registration rejected, resetting installation",
                    status=e.status_code,
                )
                await self._reset_installation()
            raise

        self._store.device = DeviceRegistration(
            device_id=device_id,
            description=description,
            permitted_ips=tuple(permitted_ips),
        )
        await self._store.save()
        self._logger.debug("Device registered", device_id=device_id)
        return True

    async def _reset_installation(self) -> None:
        self._store.installation = None
        self._store.device = None
        self._store.clear_session()
        if self._scheduler is not None:
            self._scheduler.disarm()
        # The server keys installations on the public key, so it must change.
        await self._key_manager.ensure_key_pair(force=True)
        await self._store.save()


def _rejects_installation(error: APIError) -> bool:
    return error.status_code == 400
