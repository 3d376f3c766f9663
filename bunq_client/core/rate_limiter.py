"""Per-endpoint concurrency and rate limiting for outbound API calls."""

import asyncio
import re
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from bunq_client.config import BunqClientConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_ID_SEGMENT = re.compile(
    r"/(?:\d+|[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})(?=/|$)"
)


def path_template(path: str) -> str:
    """Replace numeric and UUID path segments with ``{id}``, e.g. ``/user/1`` -> ``/user/{id}``."""
    return _ID_SEGMENT.sub("/{id}", path.split("?", 1)[0])


class RequestLimiter:
    """
    Bounds in-flight calls and call starts per time window for one endpoint.

    Callers are admitted strictly in submission order: a caller waiting for a
    free slot or for the window to roll over holds back everyone behind it.
    The limiter only schedules execution; errors raised by the wrapped call
    propagate unchanged.

    Example:
        ```python
        limiter = RequestLimiter(max_concurrent=1, max_requests=5, interval=3.0)
        response = await limiter.run(lambda: http.request("POST", "/installation"))
        ```
    """

    def __init__(self, *, max_concurrent: int, max_requests: int, interval: float) -> None:
        """
        Args:
            max_concurrent: Maximum number of calls running at once.
            max_requests: Maximum number of calls started per interval.
            interval: Window length in seconds.
        """
        if max_concurrent <= 0 or max_requests <= 0 or interval <= 0:
            msg = "limiter bounds must be positive"
            raise ValueError(msg)
        self._max_requests = max_requests
        self._interval = interval
        self._slots = asyncio.Semaphore(max_concurrent)
        self._admission = asyncio.Lock()
        self._started: deque[float] = deque()
        self._waiting = 0

    @property
    def waiting(self) -> int:
        """Number of callers queued and not yet running."""
        return self._waiting

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``call`` once capacity allows.

        Args:
            call: Zero-argument coroutine factory to execute.

        Returns:
            Whatever ``call`` returns.
        """
        self._waiting += 1
        try:
            async with self._admission:
                await self._slots.acquire()
                try:
                    await self._wait_for_window()
                except BaseException:
                    self._slots.release()
                    raise
        finally:
            self._waiting -= 1

        try:
            return await call()
        finally:
            self._slots.release()

    async def _wait_for_window(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            now = loop.time()
            while self._started and now - self._started[0] >= self._interval:
                self._started.popleft()
            if len(self._started) < self._max_requests:
                self._started.append(now)
                return
            delay = self._started[0] + self._interval - now
            logger.debug("Rate limit window full, delaying request", delay=round(delay, 3))
            await asyncio.sleep(delay)


class RequestLimitFactory:
    """Hands out one shared RequestLimiter per (path, method) pair."""

    def __init__(self, config: BunqClientConfig) -> None:
        self._config = config
        self._limiters: dict[tuple[str, str], RequestLimiter] = {}

    def create(self, path: str, method: str = "GET") -> RequestLimiter:
        """
        Get the limiter for an endpoint, creating it on first use.

        Args:
            path: Endpoint path; resource ids are folded into ``{id}`` so
                every resource of one kind shares a limiter.
            method: HTTP method.

        Returns:
            The limiter shared by every caller of this endpoint.
        """
        key = (path_template(path), method.upper())
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = RequestLimiter(
                max_concurrent=self._config.rate_limit_max_concurrent,
                max_requests=self._config.requests_per_window(method),
                interval=self._config.rate_limit_window,
            )
            self._limiters[key] = limiter
        return limiter

    def clear(self) -> None:
        self._limiters.clear()

    def __len__(self) -> int:
        return len(self._limiters)
