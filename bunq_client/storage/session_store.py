"""
Persisted handshake and session state.

Installation, device registration, session and principal map are stored as
one unit, tagged with the API key and environment that produced them.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from bunq_client.crypto.signing import load_public_key
from bunq_client.crypto.storage_cipher import StorageCipher, is_sealed
from bunq_client.models.principal import Principal, decode_principal
from bunq_client.models.session import (
    ApiSession,
    DeviceRegistration,
    Installation,
    InstallState,
)
from bunq_client.storage.protocol import StorageInterface

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """
    In-memory view of the handshake state plus its persistence.

    A later stage is only meaningful while every earlier stage is present;
    ``state`` and ``has_valid_session`` enforce that ordering. ``generation``
    changes whenever the session is discarded, so a renewal that started
    earlier can tell its result no longer belongs here.
    """

    def __init__(
        self,
        storage: StorageInterface,
        *,
        storage_key: str = "BUNQJSCLIENT_SESSION",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            storage: Async key/value storage.
            storage_key: Key the session unit is stored under.
            clock: Returns the current aware UTC time.
        """
        self._storage = storage
        self._storage_key = storage_key
        self._clock = clock
        self.generation = 0
        self.cipher: StorageCipher | None = None

        self.api_key: str | None = None
        self.environment: str | None = None
        self.permitted_ips: tuple[str, ...] = ()
        self.installation: Installation | None = None
        self.device: DeviceRegistration | None = None
        self.session: ApiSession | None = None
        self.principals: dict[str, dict[str, Any]] = {}

    def now(self) -> datetime:
        return self._clock()

    @property
    def state(self) -> InstallState:
        if self.installation is None:
            return InstallState.UNINSTALLED
        if self.device is None:
            return InstallState.INSTALLED
        return InstallState.DEVICE_REGISTERED

    @property
    def is_installed(self) -> bool:
        return self.installation is not None

    @property
    def is_device_registered(self) -> bool:
        return self.is_installed and self.device is not None

    def has_valid_session(self) -> bool:
        """Installation, device and an unexpired session are all present."""
        return (
            self.is_device_registered
            and self.session is not None
            and self.session.is_valid(self.now())
        )

    def set_principal(self, principal: Principal) -> None:
        """Record a principal in the principal map under its type."""
        if principal.is_oauth:
            # OAuth keys are exposed as the user that granted them.
            self.principals[principal.type.value] = dict(principal.granted_by.info)
        else:
            self.principals[principal.type.value] = dict(principal.info)

    async def load(self, api_key: str, environment: str) -> None:
        """
        Restore stored state for this API key and environment.

        State persisted for another API key or environment is discarded, as
        is state that does not match the current ``cipher``: encrypted state
        without a cipher, plain state with one, or the wrong encryption key.
        """
        self._reset()
        self.api_key = api_key
        self.environment = environment

        stored = await self._storage.get(self._storage_key)
        if not stored:
            logger.debug("No stored session")
            return

        try:
            stored = self._decode(stored)
        except ValueError as e:
            logger.error("Stored session cannot be decrypted, discarding", reason=str(e))
            await self._storage.remove(self._storage_key)
            return

        if stored.get("api_key") != api_key or stored.get("environment") != environment:
            logger.debug("Stored session belongs to another API key or environment, discarding")
            await self._storage.remove(self._storage_key)
            return

        try:
            self._restore(stored)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Stored session is unreadable, discarding", error_type=type(e).__name__)
            self._reset()
            self.api_key = api_key
            self.environment = environment
            await self._storage.remove(self._storage_key)
            return

        logger.debug("Loaded stored session", state=self.state)

    async def save(self) -> None:
        value: Any = self.to_dict()
        if self.cipher is not None:
            value = self.cipher.seal(value, context=self._storage_key)
        await self._storage.set(self._storage_key, value)

    async def destroy(self) -> None:
        """Forget everything and delete the stored unit."""
        api_key, environment = self.api_key, self.environment
        self._reset()
        self.api_key = api_key
        self.environment = environment
        await self._storage.remove(self._storage_key)

    def clear_session(self) -> None:
        """Forget the session and principals and invalidate renewals in flight."""
        self.session = None
        self.principals = {}
        self.generation += 1

    async def destroy_api_session(self) -> None:
        """Drop only the session, keeping installation and device."""
        self.clear_session()
        await self.save()

    def to_dict(self) -> dict[str, Any]:
        installation = None
        if self.installation is not None:
            installation = {
                "server_public_key": self.installation.server_public_key_pem,
                "token": self.installation.token,
                "created": self.installation.created_at.isoformat(),
                "updated": self.installation.updated_at.isoformat(),
            }
        device = None
        if self.device is not None:
            device = {
                "id": self.device.device_id,
                "description": self.device.description,
                "permitted_ips": list(self.device.permitted_ips),
            }
        session = None
        if self.session is not None:
            session = {
                "id": self.session.session_id,
                "token": self.session.token,
                "token_id": self.session.token_id,
                "created": self.session.created_at.isoformat(),
                "timeout_ms": self.session.timeout_ms,
                "user_info": self.session.principal.to_payload(),
            }
        return {
            "api_key": self.api_key,
            "environment": self.environment,
            "installation": installation,
            "device": device,
            "session": session,
            "principals": self.principals,
        }

    def _decode(self, stored: Any) -> dict[str, Any]:
        if self.cipher is None:
            if is_sealed(stored):
                msg = "stored session is encrypted but no encryption key was given"
                raise ValueError(msg)
            return stored
        if not is_sealed(stored):
            msg = "stored session is not encrypted"
            raise ValueError(msg)
        return self.cipher.open(stored, context=self._storage_key)

    def _restore(self, stored: dict[str, Any]) -> None:
        if installation := stored.get("installation"):
            self.installation = Installation(
                server_public_key_pem=installation["server_public_key"],
                server_public_key=load_public_key(installation["server_public_key"]),
                token=installation["token"],
                created_at=datetime.fromisoformat(installation["created"]),
                updated_at=datetime.fromisoformat(installation["updated"]),
            )
        if device := stored.get("device"):
            self.device = DeviceRegistration(
                device_id=device["id"],
                description=device["description"],
                permitted_ips=tuple(device.get("permitted_ips", ())),
            )
        if session := stored.get("session"):
            self.session = ApiSession(
                session_id=session["id"],
                token=session["token"],
                token_id=session["token_id"],
                created_at=datetime.fromisoformat(session["created"]),
                timeout_ms=session["timeout_ms"],
                principal=decode_principal(session["user_info"]),
            )
        self.principals = dict(stored.get("principals") or {})

    def _reset(self) -> None:
        self.generation += 1
        self.api_key = None
        self.environment = None
        self.permitted_ips = ()
        self.installation = None
        self.device = None
        self.session = None
        self.principals = {}
