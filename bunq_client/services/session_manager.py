"""
Session creation and single-flight renewal.
"""

import asyncio
from typing import Any

import structlog

from bunq_client.api.endpoints.session_server import create_session_server
from bunq_client.api.endpoints.user import list_users
from bunq_client.api.http_client import AsyncHttpClient
from bunq_client.exceptions import (
    APIError,
    ConfigurationError,
    ErrorCode,
    SessionCreationError,
    SignatureVerificationError,
)
from bunq_client.models.principal import Principal, decode_principal
from bunq_client.models.session import ApiSession, parse_timestamp
from bunq_client.services.expiry_scheduler import ExpiryScheduler
from bunq_client.storage.session_store import SessionStore


class SessionManager:
    """
    Keeps an authenticated session available.

    Concurrency:
    - At most one session-server call is in flight. Callers arriving while a
      renewal runs await the same task and observe the same outcome.
    - The pending task is forgotten before its outcome is delivered, so a
      call after a failure starts a fresh attempt.
    """

    def __init__(
        self,
        http_client: AsyncHttpClient,
        store: SessionStore,
        *,
        scheduler: ExpiryScheduler | None = None,
        logger: Any = None,
    ) -> None:
        """
        Args:
            http_client: HTTP client for API requests.
            store: Session store holding handshake state.
            scheduler: Re-armed after every new session.
            logger: Optional logger; defaults to a structlog logger for this module.
        """
        self._http = http_client
        self._store = store
        self._scheduler = scheduler
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._renewal: asyncio.Task[ApiSession] | None = None

    @property
    def renewal_in_progress(self) -> bool:
        return self._renewal is not None

    async def register_session(self) -> bool:
        """
        Make sure a valid session exists, creating one if needed.

        Returns:
            True once a valid session is available.

        Raises:
            SessionCreationError: If the session-server call fails.
            UnsupportedPrincipalError: If the session's user type is unknown.
        """
        if self._store.has_valid_session():
            return True

        if self._renewal is None:
            self._renewal = asyncio.ensure_future(self._renew())
        else:
            self._logger.debug("Session renewal already in progress, waiting for it")

        # Shield so a cancelled caller does not cancel the shared renewal.
        await asyncio.shield(self._renewal)
        return True

    async def _renew(self) -> ApiSession:
        try:
            return await self.generate_session()
        finally:
            self._renewal = None

    async def generate_session(self) -> ApiSession:
        """
        Create a session on the server and store it.

        Returns:
            The new session.

        Raises:
            ConfigurationError: If the installation or device is missing.
            SessionCreationError: If the session-server call fails, or the
                session was discarded while the call was in flight.
            UnsupportedPrincipalError: If the session's user type is unknown.
        """
        if not self._store.is_device_registered:
            msg = "Installation and device registration are required before creating a session"
            raise ConfigurationError(msg, error_code=ErrorCode.MISSING_INSTALLATION)

        generation = self._store.generation
        self._logger.debug("Attempting to fetch session")
        try:
            response = await create_session_server(self._http, self._store.api_key or "")
        except SignatureVerificationError:
            raise
        except Exception as e:
            if isinstance(e, APIError) and e.description:
                self._logger.error("bunq API error", description=e.description)
            msg = "Failed to create a session"
            raise SessionCreationError(msg, error_code=ErrorCode.SESSION_CREATION_FAILED) from e

        if self._store.generation != generation:
            self._logger.debug("Session was discarded during renewal, dropping the new one")
            msg = "Session was discarded while it was being created"
            raise SessionCreationError(msg, error_code=ErrorCode.SESSION_CREATION_FAILED)

        token = response["Token"]
        user_info = {key: value for key, value in response.items() if key not in ("Id", "Token")}
        principal = decode_principal(user_info)
        timeout_seconds = principal.session_timeout
        self._logger.debug(
            "Received session timeout",
            session_timeout=timeout_seconds,
            oauth=principal.is_oauth,
        )

        session = ApiSession(
            session_id=response["Id"]["id"],
            token=token["token"],
            token_id=token["id"],
            created_at=parse_timestamp(token["created"]),
            timeout_ms=timeout_seconds * 1000,
            principal=principal,
        )
        self._store.session = session
        self._store.principals = {}
        self._store.set_principal(principal)
        self._logger.debug(
            "Calculated session expiry",
            expiry=session.expiry_time.isoformat(),
            now=self._store.now().isoformat(),
        )

        await self._store.save()
        if self._scheduler is not None:
            self._scheduler.arm()
        return session

    async def refresh_principals(self) -> dict[str, dict[str, Any]]:
        """
        Re-validate the session and reload the principal map from the API.

        Returns:
            The updated principal map.
        """
        await self.register_session()
        generation = self._store.generation
        principal = decode_principal(await list_users(self._http))
        if self._store.generation != generation:
            return self._store.principals
        self._store.set_principal(principal)
        await self._store.save()
        return self._store.principals

    def current_principal(self) -> Principal | None:
        session = self._store.session
        return session.principal if session is not None else None
