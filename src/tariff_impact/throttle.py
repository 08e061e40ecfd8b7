"""Request spacing for the upstream economic-data API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RequestLimiter:
    """
    Enforce a minimum interval between upstream requests.

    One instance is created per indicator source and handed to whoever issues
    requests; the last-request timestamp lives on the instance, never at
    module level.  Callers are delayed, not rejected.

    ``clock`` and ``sleep`` are injectable so tests do not have to wait.
    """

    def __init__(
        self,
        min_interval: float = 2.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _loop_lock(self) -> asyncio.Lock:
        """The lock for the running loop; a limiter outlives single ``asyncio.run`` calls."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def acquire(self) -> float:
        """Wait until the next request may be sent. Returns the seconds waited."""
        async with self._loop_lock():
            waited = 0.0
            now = self._clock()
            if self._last is not None:
                remaining = self.min_interval - (now - self._last)
                if remaining > 0:
                    logger.debug("Throttling upstream request for %.2fs", remaining)
                    await self._sleep(remaining)
                    waited = remaining
                    now = self._clock()
            self._last = now
            return waited
