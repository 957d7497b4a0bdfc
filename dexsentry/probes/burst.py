"""
Bounded fan-out for the load-style probes.

Every request runs through one ``asyncio.Semaphore`` so a burst of N
requests never has more than *concurrency* in flight.  Each request
writes only its own result slot; callers count outcomes, they never
rely on completion order.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from dexsentry.models.records import ProbeResponse


@dataclass
class BurstStats:
    sent: int = 0
    duration_ms: float = 0.0
    statuses: Counter = field(default_factory=Counter)
    transport_errors: int = 0
    elapsed: list[float] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(n for code, n in self.statuses.items() if 200 <= code < 300)

    @property
    def rate_limited(self) -> int:
        return self.statuses.get(429, 0)

    @property
    def failed(self) -> int:
        return self.sent - self.successful

    @property
    def requests_per_second(self) -> int:
        if self.duration_ms <= 0:
            return 0
        return round(self.sent / self.duration_ms * 1000)

    @property
    def avg_ms(self) -> float:
        return round(sum(self.elapsed) / len(self.elapsed), 2) if self.elapsed else 0.0


async def burst(
    count: int,
    send: Callable[[int], Awaitable[ProbeResponse]],
    concurrency: int,
) -> list[ProbeResponse]:
    """Run ``send(i)`` for i in range(count), at most *concurrency* at a time."""
    semaphore = asyncio.Semaphore(max(1, concurrency))
    results: list[ProbeResponse | None] = [None] * count

    async def _one(i: int) -> None:
        async with semaphore:
            results[i] = await send(i)

    await asyncio.gather(*(_one(i) for i in range(count)))
    return results  # type: ignore[return-value]


async def timed_burst(
    count: int,
    send: Callable[[int], Awaitable[ProbeResponse]],
    concurrency: int,
) -> BurstStats:
    """``burst()`` plus the counting every load probe needs."""
    start = time.perf_counter()
    responses = await burst(count, send, concurrency)
    stats = BurstStats(
        sent=count,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    for r in responses:
        if r.transport_failed:
            stats.transport_errors += 1
        else:
            stats.statuses[r.status_code] += 1
            stats.elapsed.append(r.elapsed_ms)
    return stats
