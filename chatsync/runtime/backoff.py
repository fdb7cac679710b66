from __future__ import annotations

"""Exponential backoff with jitter for retried calls."""

import asyncio
import random
from typing import Awaitable, Callable

from chatsync.foundation.config import BackoffConfig

from . import configuration

Sleep = Callable[[float], Awaitable[None]]


class BackoffMachine:
    """Produce a non-decreasing, capped, randomized sequence of delays.

    The undisturbed delay for attempt ``n`` is
    ``min(ceiling, first_delay * base ** n)``. Jitter shaves off up to
    ``jitter_ratio`` of it, and the result never drops below the previous
    delay, so the sequence rises and then plateaus near the ceiling.

    One instance covers one retried operation; create a fresh machine for
    every call that should start from the shortest delay again.
    """

    def __init__(
        self,
        config: BackoffConfig | None = None,
        *,
        sleep: Sleep | None = None,
        rng: Callable[[], float] | None = None,
    ) -> None:
        cfg = config or configuration.get_backoff_config()
        self._first_delay = float(cfg.first_delay_seconds)
        self._ceiling = float(cfg.ceiling_seconds)
        self._base = float(cfg.base)
        self._jitter_ratio = float(cfg.jitter_ratio)
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.random
        self._attempts = 0
        self._last_delay = 0.0

    @property
    def attempts(self) -> int:
        return self._attempts

    def next(self) -> float:
        """Return the next delay in seconds and advance the schedule."""

        raw = min(self._ceiling, self._first_delay * self._base ** self._attempts)
        jittered = raw * (1.0 - self._jitter_ratio * self._rng())
        delay = max(self._last_delay, jittered)
        self._attempts += 1
        self._last_delay = delay
        return delay

    async def wait(self) -> float:
        """Sleep for the next delay and return it."""

        delay = self.next()
        await self.sleep(delay)
        return delay

    async def sleep(self, delay: float) -> None:
        await self._sleep(delay)


__all__ = ["BackoffMachine", "Sleep"]
