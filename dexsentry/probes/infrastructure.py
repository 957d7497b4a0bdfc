"""
Phase 1 probes — rate limiting, liquidity drain and precision/rounding.
"""

from __future__ import annotations

from typing import Optional

from dexsentry.config import (
    BURST_CONCURRENCY,
    BURST_TIMEOUT,
    DEFAULT_FEE_TIER,
    RATE_LIMIT_REQUESTS,
    TOKEN_GALA,
    TOKEN_GUSDC,
)
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import BaseProbe
from dexsentry.probes.burst import timed_burst

PRICE_PATH = "/v1/trade/price"
QUOTE_PATH = "/v1/trade/quote"


def quote_params(amount: str, token_in: str = TOKEN_GALA, token_out: str = TOKEN_GUSDC) -> dict:
    return {
        "tokenIn": token_in,
        "tokenOut": token_out,
        "amountIn": amount,
        "fee": DEFAULT_FEE_TIER,
    }


def quote_data(response: ProbeResponse) -> Optional[dict]:
    """The ``data`` object of a successful trade response."""
    if not response.ok or not isinstance(response.data, dict):
        return None
    payload = response.data.get("data")
    return payload if isinstance(payload, dict) else None


def quote_number(response: ProbeResponse, key: str) -> Optional[float]:
    payload = quote_data(response)
    if payload is None:
        return None
    try:
        return float(payload.get(key))
    except (TypeError, ValueError):
        return None


def amount_out(response: ProbeResponse) -> Optional[float]:
    """Pull ``data.amountOut`` out of a quote response."""
    return quote_number(response, "amountOut")


class RateLimitProbe(BaseProbe):
    """Burst the price endpoint and count 429s."""

    name = "Rate Limiting"
    category = "Critical Infrastructure"
    description = "Sends a burst of price requests and expects HTTP 429 at some point"
    fail_severity = Severity.CRITICAL
    pass_message = "Rate limiting is active"
    fail_message = "URGENT: Implement rate limiting immediately"

    def __init__(
        self,
        requests: int = RATE_LIMIT_REQUESTS,
        concurrency: int = BURST_CONCURRENCY,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.requests = requests
        self.concurrency = concurrency

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(
                client, PRICE_PATH, {"token": TOKEN_GALA}, timeout=BURST_TIMEOUT,
            )

        stats = await timed_burst(self.requests, _send, self.concurrency)
        if stats.transport_errors == stats.sent:
            return self.transport_record("every request in the burst failed")

        details = {
            "requestsSent": stats.sent,
            "successful": stats.successful,
            "rateLimited": stats.rate_limited,
            "duration": f"{stats.duration_ms:.0f}ms",
            "requestsPerSecond": stats.requests_per_second,
        }
        metrics = {
            "concurrency": self.concurrency,
            "transportErrors": stats.transport_errors,
            "statuses": {str(k): v for k, v in sorted(stats.statuses.items())},
        }
        return self.record(stats.rate_limited > 0, details, metrics=metrics)


class LiquidityDrainProbe(BaseProbe):
    """Quote progressively larger trades and watch the price impact."""

    name = "Liquidity Drain"
    category = "Critical Infrastructure"
    description = "Checks whether large trades move the quoted rate excessively"
    fail_severity = Severity.HIGH
    pass_message = "Pool liquidity handles large trades appropriately"
    fail_message = "Large trades cause excessive price impact - implement trade size limits"

    AMOUNTS = ["1000", "10000", "100000", "1000000", "10000000"]
    MAX_IMPACT_PCT = 10.0

    async def probe(self, client):
        trades: list[dict] = []
        previous_rate: Optional[float] = None
        unreachable = 0

        for amount in self.AMOUNTS:
            resp = await self.get(client, QUOTE_PATH, quote_params(amount))
            out = amount_out(resp)
            if out is None:
                if resp.transport_failed:
                    unreachable += 1
                trades.append({
                    "amount": amount,
                    "error": resp.error or f"HTTP {resp.status_code}",
                })
                continue

            rate = out / float(amount)
            impact = (previous_rate - rate) / previous_rate * 100 if previous_rate else 0.0
            trades.append({
                "amount": amount,
                "rate": rate,
                "priceImpact": f"{impact:.2f}%",
            })
            previous_rate = rate
            await self.pause()

        if unreachable == len(self.AMOUNTS):
            return self.transport_record("no quote could be fetched")

        impacts = [
            abs(float(t["priceImpact"].rstrip("%")))
            for t in trades if "priceImpact" in t
        ]
        max_impact = max(impacts) if impacts else 0.0
        excessive = max_impact > self.MAX_IMPACT_PCT
        details = {
            "message": f"Max price impact {max_impact:.2f}% across {len(self.AMOUNTS)} trade sizes",
            "tradeTests": trades,
            "maxImpact": f"{max_impact:.2f}%",
        }
        return self.record(not excessive, details)


class PrecisionProbe(BaseProbe):
    """Round-trip quotes with awkward decimals and look for value loss."""

    name = "Precision/Rounding"
    category = "Critical Infrastructure"
    description = "Quotes GALA→GUSDC→GALA for dust and repeating decimals"
    fail_severity = Severity.LOW
    pass_message = "Precision handling appears robust"
    fail_message = "Review decimal precision handling in swap calculations"

    CASES = [
        ("0.000000000000000001", "Minimum precision"),
        ("0.999999999999999999", "Just under 1"),
        ("1.000000000000000001", "Just over 1"),
        ("333.333333333333333333", "Repeating decimal"),
        ("0.1", "Known binary precision issue"),
        ("0.2", "Known binary precision issue"),
        ("0.3", "Known binary precision issue"),
        ("1000000.000000000001", "Large with dust"),
    ]
    # Two 1% fee hops plus slack
    ACCEPTABLE_LOSS = 0.025

    async def probe(self, client):
        issues: list[dict] = []
        inconclusive = 0

        for amount, description in self.CASES:
            forward = await self.get(client, QUOTE_PATH, quote_params(amount))
            if forward.transport_failed:
                verdict = self.transport_verdict()
                if verdict is None:
                    inconclusive += 1
                elif verdict:
                    issues.append({"case": description, "error": forward.error})
                continue
            if forward.status_code == 400:
                continue  # properly rejected
            out = amount_out(forward)
            if out is None:
                issues.append({"case": description, "error": f"HTTP {forward.status_code}"})
                continue

            reverse = await self.get(
                client, QUOTE_PATH,
                quote_params(repr(out), token_in=TOKEN_GUSDC, token_out=TOKEN_GALA),
            )
            returned = amount_out(reverse)
            if returned is None:
                continue

            original = float(amount)
            loss = original - returned
            if abs(loss) > original * self.ACCEPTABLE_LOSS and original > 0.001:
                issues.append({
                    "case": description,
                    "input": amount,
                    "returned": returned,
                    "loss": f"{loss:.10f}",
                    "lossPercent": f"{loss / original * 100:.2f}%",
                })
            await self.pause()

        details = {
            "testCases": len(self.CASES),
            "issuesFound": len(issues),
            "issues": issues,
        }
        if issues:
            severity = Severity.MEDIUM if len(issues) > 2 else Severity.LOW
            return self.record(False, details, severity=severity)
        if inconclusive == len(self.CASES):
            return self.transport_record("no quote could be fetched")
        if inconclusive:
            return self.record(
                False, details, severity=Severity.ERROR,
                recommendation=f"{inconclusive} case(s) got no response; re-run to obtain a verdict",
            )
        return self.record(True, details)
