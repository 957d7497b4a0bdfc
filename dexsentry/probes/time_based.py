"""
Phase 4A probes — timestamp, deadline and replay handling on swaps.
"""

from __future__ import annotations

import time
import uuid
from typing import Optional

from dexsentry.models.records import Severity
from dexsentry.probes.base import BaseProbe, error_message

SWAP_PATH = "/v1/trade/swap"
MAX_SAFE_INTEGER = 2**53 - 1
HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


def _now_ms() -> int:
    return int(time.time() * 1000)


def swap_payload(**extra) -> dict:
    payload = {"tokenIn": "GALA", "tokenOut": "GUSDC", "amountIn": "100"}
    payload.update(extra)
    return payload


class TimestampManipulationProbe(BaseProbe):
    name = "Timestamp Manipulation"
    category = "Time-Based Attacks"
    description = "Submits swaps stamped in the future, the past and at the integer limits"
    fail_severity = Severity.HIGH
    pass_message = "Timestamp validation properly implemented"
    fail_message = "Implement strict timestamp validation within acceptable range"

    async def probe(self, client):
        now = _now_ms()
        stamps = [
            ("Future Timestamp", now + DAY_MS),
            ("Past Timestamp", now - 7 * DAY_MS),
            ("Zero Timestamp", 0),
            ("Negative Timestamp", -1),
            ("Max Timestamp", MAX_SAFE_INTEGER),
        ]
        cases = []
        for description, stamp in stamps:
            resp = await self.post(
                client, SWAP_PATH,
                swap_payload(timestamp=stamp, deadline=stamp + HOUR_MS),
            )
            vulnerable = resp.status_code == 200 and "timestamp" not in error_message(resp)
            cases.append(self.case(description, resp, vulnerable=vulnerable))
            await self.pause()
        return self.finish(cases)


class DeadlineBypassProbe(BaseProbe):
    name = "Deadline Bypass"
    category = "Time-Based Attacks"
    description = "Submits swaps whose deadline has already passed"
    fail_severity = Severity.HIGH
    pass_message = "Expired deadlines are rejected"
    fail_message = "Reject swaps whose deadline is missing, zero or already past"

    async def probe(self, client):
        now = _now_ms()
        deadlines: list[tuple[str, Optional[int]]] = [
            ("Expired Deadline", now - HOUR_MS),
            ("Immediate Expiry", now),
            ("No Deadline", None),
            ("Zero Deadline", 0),
            ("Infinite Deadline", MAX_SAFE_INTEGER),
        ]
        cases = []
        for description, deadline in deadlines:
            payload = swap_payload(minAmountOut="90")
            if deadline is not None:
                payload["deadline"] = deadline
            resp = await self.post(client, SWAP_PATH, payload)
            should_fail = deadline is not None and deadline <= now
            cases.append(self.case(description, resp, vulnerable=should_fail and resp.status_code == 200))
            await self.pause()
        return self.finish(cases)


class ReplayProtectionProbe(BaseProbe):
    name = "Replay Attack Protection"
    category = "Time-Based Attacks"
    description = "Submits the same nonce-bearing swap twice"
    fail_severity = Severity.HIGH
    pass_message = "Duplicate submissions are rejected"
    fail_message = "Track nonces per wallet and reject duplicates"

    async def probe(self, client):
        payload = swap_payload(
            nonce=str(uuid.uuid4()),
            timestamp=_now_ms(),
            signature="0x" + "00" * 65,
        )
        first = await self.post(client, SWAP_PATH, payload)
        await self.pause()
        second = await self.post(client, SWAP_PATH, payload)

        cases = [
            self.case("Original submission", first, vulnerable=False),
            self.case("Replayed submission", second, vulnerable=first.ok and second.ok),
        ]
        return self.finish(cases)
