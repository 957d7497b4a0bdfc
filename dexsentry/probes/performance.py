"""
Phase 4C probes — response time, concurrent load and degradation.

These are the only probes that put real load on the target; every burst
goes through the bounded pool in ``burst.py``.
"""

from __future__ import annotations

import asyncio

from dexsentry.config import (
    BURST_CONCURRENCY,
    LOAD_LEVELS,
    SLOW_RESPONSE_MS,
    TOKEN_GALA,
    TOKEN_GUSDC,
    DEFAULT_FEE_TIER,
)
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import BaseProbe
from dexsentry.probes.burst import timed_burst
from dexsentry.probes.infrastructure import PRICE_PATH, QUOTE_PATH, quote_params

ENDPOINTS = [
    ("Price", PRICE_PATH, {"token": TOKEN_GALA}),
    ("Quote", QUOTE_PATH, quote_params("1000")),
    ("Pool", "/v1/trade/pool", {"token0": TOKEN_GALA, "token1": TOKEN_GUSDC, "fee": DEFAULT_FEE_TIER}),
]


class ResponseTimeBaselineProbe(BaseProbe):
    name = "Response Time Baseline"
    category = "Performance"
    description = "Samples each public trade endpoint sequentially"
    fail_severity = Severity.MEDIUM
    pass_message = "Response times acceptable"
    fail_message = "Some endpoints exceed 1 second response time"

    def __init__(self, samples: int = 5, **kwargs) -> None:
        super().__init__(**kwargs)
        self.samples = samples

    async def probe(self, client):
        timings = []
        reachable = False
        for label, path, params in ENDPOINTS:
            times: list[float] = []
            failures = 0
            for _ in range(self.samples):
                resp = await self.get(client, path, params)
                if resp.transport_failed:
                    failures += 1
                else:
                    reachable = True
                    times.append(resp.elapsed_ms)
                await self.pause()
            timings.append({
                "endpoint": label,
                "avgMs": round(sum(times) / len(times), 2) if times else None,
                "minMs": min(times) if times else None,
                "maxMs": max(times) if times else None,
                "failures": failures,
            })

        if not reachable:
            return self.transport_record("no endpoint answered")

        slow = [t["endpoint"] for t in timings if t["avgMs"] is not None and t["avgMs"] > SLOW_RESPONSE_MS]
        details = {
            "message": (
                f"Slow endpoints: {', '.join(slow)}" if slow
                else f"All {len(timings)} endpoints answered under {SLOW_RESPONSE_MS}ms on average"
            ),
            "timings": timings,
        }
        return self.record(not slow, details)


class ConcurrentLoadProbe(BaseProbe):
    name = "Concurrent Load Handling"
    category = "Performance"
    description = "Sends bursts of increasing size and counts dropped requests"
    fail_severity = Severity.HIGH
    pass_message = "Handles concurrent load well"
    fail_message = "API drops requests under concurrent load"

    def __init__(self, levels=LOAD_LEVELS, concurrency: int = BURST_CONCURRENCY, **kwargs) -> None:
        super().__init__(**kwargs)
        self.levels = tuple(levels)
        self.concurrency = concurrency

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(client, PRICE_PATH, {"token": TOKEN_GALA})

        rounds = []
        all_unreachable = True
        for level in self.levels:
            stats = await timed_burst(level, _send, min(level, self.concurrency))
            if stats.transport_errors < stats.sent:
                all_unreachable = False
            # 429 is the rate limiter doing its job, not a dropped request
            dropped = stats.sent - stats.successful - stats.rate_limited - stats.transport_errors
            if self.transport_verdict():
                dropped += stats.transport_errors
            rounds.append({
                "concurrent": level,
                "successful": stats.successful,
                "rateLimited": stats.rate_limited,
                "failed": dropped,
                "totalTimeMs": stats.duration_ms,
                "avgTimeMs": stats.avg_ms,
            })
            await self.pause()

        if all_unreachable:
            return self.transport_record("every request in every burst failed")

        dropped_total = sum(r["failed"] for r in rounds)
        return self.record(dropped_total == 0, {
            "message": f"{dropped_total} requests dropped across {len(rounds)} load levels",
            "rounds": rounds,
        })


class DegradationProbe(BaseProbe):
    name = "Degradation Under Load"
    category = "Performance"
    description = "Compares burst completion time at 10, 20 and 30 concurrent requests"
    fail_severity = Severity.HIGH
    pass_message = "Performance scales acceptably"
    fail_message = "Performance degrades significantly under load"

    def __init__(
        self,
        levels=(10, 20, 30),
        repeats: int = 3,
        concurrency: int = BURST_CONCURRENCY,
        settle: float = 1.0,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.levels = tuple(levels)
        self.repeats = repeats
        self.concurrency = concurrency
        self.settle = settle

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(client, PRICE_PATH, {"token": TOKEN_GALA})

        stages = []
        answered = 0
        for stage, level in enumerate(self.levels, 1):
            durations = []
            for _ in range(self.repeats):
                stats = await timed_burst(level, _send, min(level, self.concurrency))
                answered += stats.sent - stats.transport_errors
                durations.append(stats.duration_ms)
                if self.settle > 0:
                    await asyncio.sleep(self.settle)
            stages.append({
                "phase": stage,
                "concurrent": level,
                "avgTimeMs": round(sum(durations) / len(durations), 2),
            })

        if answered == 0:
            return self.transport_record("every request in every burst failed")

        first, last = stages[0]["avgTimeMs"], stages[-1]["avgTimeMs"]
        rate = (last - first) / first if first > 0 else 0.0
        details = {
            "message": f"Burst time grew {rate * 100:.2f}% from {self.levels[0]} to {self.levels[-1]} concurrent requests",
            "phases": stages,
            "degradationPercent": f"{rate * 100:.2f}%",
        }
        if rate > 2:
            return self.record(False, details, severity=Severity.HIGH)
        if rate > 1:
            return self.record(False, details, severity=Severity.MEDIUM)
        return self.record(True, details)
