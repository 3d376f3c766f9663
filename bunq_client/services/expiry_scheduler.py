"""
Session self-renewal timer.

Arms a single timer that fires shortly before the session expires, kicks
off a background refresh and re-arms itself for at most five minutes later.
"""

import asyncio
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from bunq_client.storage.session_store import SessionStore

FIVE_MINUTES_MS = 300_000
RENEWAL_MARGIN_MS = 15_000


@dataclass(frozen=True, kw_only=True)
class ScheduledRenewal:
    """
    An armed renewal timer.

    Holds a snapshot of the session it was computed from; the handle is the
    only way to cancel it.

    Attributes:
        expiry_time: Session expiry at arm time.
        timeout_ms: Session lifetime at arm time.
        delay_ms: Milliseconds from arm time until the timer fires.
        handle: Event loop timer handle.
    """

    expiry_time: datetime
    timeout_ms: int
    delay_ms: float
    handle: asyncio.TimerHandle

    def cancel(self) -> None:
        self.handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self.handle.cancelled()


class ExpiryScheduler:
    """
    Renews the session before it expires.

    At most one timer is outstanding. The keep-alive flag is read both when
    arming and when the timer fires, since it may change in between.
    """

    def __init__(
        self,
        store: SessionStore,
        on_expiry: Callable[[], Awaitable[Any]],
        *,
        is_enabled: Callable[[], bool],
        ci_env_var: str = "ENV_CI",
        logger: Any = None,
    ) -> None:
        """
        Args:
            store: Session store providing the current session.
            on_expiry: Refresh to run in the background when the timer fires.
            is_enabled: Returns whether self-renewal is currently enabled.
            ci_env_var: Environment variable that disables arming when "true".
            logger: Optional logger; defaults to a structlog logger for this module.
        """
        self._store = store
        self._on_expiry = on_expiry
        self._is_enabled = is_enabled
        self._ci_env_var = ci_env_var
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._armed: ScheduledRenewal | None = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def armed(self) -> ScheduledRenewal | None:
        """The outstanding timer, if any."""
        return self._armed

    def arm(self, short_timeout: bool = False) -> ScheduledRenewal | None:
        """
        Schedule a renewal 15 seconds before the session expires.

        Args:
            short_timeout: Cap the delay at min(session timeout, five minutes)
                instead of the time left; used right after a renewal.

        Returns:
            The armed timer, or None if nothing was scheduled.
        """
        if os.environ.get(self._ci_env_var) == "true" or not self._is_enabled():
            self.disarm()
            return None

        session = self._store.session
        if session is None:
            return None

        if short_timeout:
            remaining_ms = min(session.timeout_ms, FIVE_MINUTES_MS)
        else:
            remaining_ms = (session.expiry_time - self._store.now()).total_seconds() * 1000
        delay_ms = remaining_ms - RENEWAL_MARGIN_MS

        self.disarm()
        loop = asyncio.get_running_loop()
        handle = loop.call_later(max(delay_ms, 0) / 1000, self._fire)
        self._armed = ScheduledRenewal(
            expiry_time=session.expiry_time,
            timeout_ms=session.timeout_ms,
            delay_ms=delay_ms,
            handle=handle,
        )
        self._logger.debug("Session renewal timer armed", delay_ms=round(delay_ms))
        return self._armed

    def disarm(self) -> None:
        """Cancel the outstanding timer, if any."""
        if self._armed is not None:
            self._armed.cancel()
            self._armed = None

    async def aclose(self) -> None:
        """Disarm and cancel refreshes still running in the background."""
        self.disarm()
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _fire(self) -> None:
        self._armed = None
        if not self._is_enabled():
            self.disarm()
            return

        task = asyncio.get_running_loop().create_task(self._refresh())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        self.arm(short_timeout=True)

    async def _refresh(self) -> None:
        try:
            await self._on_expiry()
        except Exception as e:
            # Nobody awaits this refresh; the next timer retries.
            self._logger.error("Session refresh failed", error=str(e), error_type=type(e).__name__)
            return
        self._logger.debug("Triggered session refresh")
