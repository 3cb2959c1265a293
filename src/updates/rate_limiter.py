"""Per-app cooldown between outbound metadata calls."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

import structlog

logger = structlog.get_logger()


class AppRateLimiter:
    """Enforce a minimum spacing between metadata calls for the same app.

    Must only be awaited from the app's own update processor: two concurrent
    callers for one app could both read a stale timestamp and skip the wait.
    """

    def __init__(
        self,
        cooldown_seconds: float = 1.5,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cooldown_seconds = max(0.0, float(cooldown_seconds))
        self._clock = clock
        self._sleep = sleep
        self._last_call: Dict[int, float] = {}

    def last_call_at(self, app_id: int) -> Optional[float]:
        return self._last_call.get(app_id)

    def required_wait(self, app_id: int) -> float:
        last = self._last_call.get(app_id)
        if last is None:
            return 0.0
        elapsed = self._clock() - last
        return max(0.0, self.cooldown_seconds - elapsed)

    async def await_turn(self, app_id: int) -> None:
        """Sleep out the remaining cooldown, then stamp the call time."""
        wait = self.required_wait(app_id)
        if wait > 0:
            logger.debug("Rate limit wait", app_id=app_id, wait_seconds=round(wait, 3))
            await self._sleep(wait)
        self._last_call[app_id] = self._clock()

    def forget(self, app_id: int) -> None:
        self._last_call.pop(app_id, None)
