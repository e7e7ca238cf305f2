"""Counting admission limiter with in-flight instrumentation."""

from __future__ import annotations

import asyncio


class AdmissionLimiter:
    """asyncio.Semaphore that also tracks how many holders are inside.

    RULES:
    - capacity >= 1
    - in_flight never exceeds capacity; peak records the highest value seen
    - Use as: async with limiter: ...
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1, got {}".format(capacity))
        self.capacity = capacity
        self.in_flight = 0
        self.peak = 0
        self.admitted = 0
        self._semaphore = asyncio.Semaphore(capacity)

    async def __aenter__(self) -> AdmissionLimiter:
        await self._semaphore.acquire()
        self.in_flight += 1
        self.admitted += 1
        self.peak = max(self.peak, self.in_flight)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.in_flight -= 1
        self._semaphore.release()

    @property
    def available(self) -> int:
        """Permits not currently held."""
        return self.capacity - self.in_flight
