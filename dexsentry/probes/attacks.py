"""
Attack simulations — fee-tier arbitrage, oracle consistency, connection
floods, hostile token strings and concurrent-state consistency.
"""

from __future__ import annotations

from dexsentry.config import BURST_CONCURRENCY, TOKEN_GALA, TOKEN_GUSDC
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import BaseProbe, dig
from dexsentry.probes.burst import burst, timed_burst
from dexsentry.probes.infrastructure import (
    PRICE_PATH,
    QUOTE_PATH,
    amount_out,
    quote_number,
    quote_params,
)

CATEGORY = "Attack Simulation"


class FeeTierArbitrageProbe(BaseProbe):
    """Quote the same borrowed amount against two fee tiers."""

    name = "Flash Loan Arbitrage"
    category = CATEGORY
    description = "Compares 1M GALA quotes on the 1% and 0.05% fee tiers"
    fail_severity = Severity.HIGH
    pass_message = "Fee tier arbitrage not profitable"
    fail_message = "Implement TWAP oracles and limit large swaps"

    AMOUNT = "1000000"
    FEE_TIERS = (10000, 500)
    # GUSDC of arbitrage profit that makes the loan worth taking
    MIN_PROFIT = 1000.0

    async def probe(self, client):
        quotes = []
        for fee in self.FEE_TIERS:
            params = quote_params(self.AMOUNT)
            params["fee"] = fee
            quotes.append(await self.get(client, QUOTE_PATH, params))
            await self.pause()

        if all(q.transport_failed for q in quotes):
            return self.transport_record("no quote could be fetched")
        outs = [amount_out(q) for q in quotes]
        if None in outs:
            return self.record(True, {
                "message": "Only one fee tier quoted; no arbitrage path",
                "statuses": {str(fee): q.status_code for fee, q in zip(self.FEE_TIERS, quotes)},
            })

        amount = float(self.AMOUNT)
        rates = [o / amount for o in outs]
        rate_diff = abs(rates[0] - rates[1])
        profit = rate_diff * amount
        details = {
            "rates": {str(fee): rate for fee, rate in zip(self.FEE_TIERS, rates)},
            "rateDifference": rate_diff,
            "potentialProfit": f"{profit:.2f} GUSDC",
        }
        return self.record(profit <= self.MIN_PROFIT, details)


class OracleConsistencyProbe(BaseProbe):
    """Parallel price reads should all return the same price."""

    name = "Oracle Manipulation"
    category = CATEGORY
    description = "Polls the price endpoint concurrently and counts distinct prices"
    fail_severity = Severity.HIGH
    pass_message = "Price remains consistent under rapid queries"
    fail_message = "Serve oracle prices from a single consistent snapshot"

    def __init__(self, requests: int = 20, concurrency: int = BURST_CONCURRENCY, **kwargs) -> None:
        super().__init__(**kwargs)
        self.requests = requests
        self.concurrency = concurrency

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(client, PRICE_PATH, {"token": TOKEN_GALA})

        responses = await burst(self.requests, _send, self.concurrency)
        if all(r.transport_failed for r in responses):
            return self.transport_record("no price could be fetched")

        prices = {repr(dig(r.data, "data")) for r in responses if r.ok}
        details = {
            "message": f"Price variations found: {len(prices)}",
            "prices": sorted(prices),
            "answered": sum(1 for r in responses if r.ok),
        }
        return self.record(len(prices) <= 1, details)


class ConnectionFloodProbe(BaseProbe):
    """A flood of short-timeout price requests should see some refused."""

    name = "DoS - Connection Flood"
    category = CATEGORY
    description = "Opens a burst of price requests with a 100ms timeout and counts refusals"
    fail_severity = Severity.CRITICAL
    pass_message = "Connection floods are throttled"
    fail_message = "Implement rate limiting per IP/wallet"

    # Fewer refused or timed-out requests than this means nothing throttles
    MIN_REFUSED = 10

    def __init__(
        self,
        requests: int = 50,
        timeout: float = 0.1,
        concurrency: int = BURST_CONCURRENCY,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.requests = requests
        self.timeout = timeout
        self.concurrency = concurrency

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(client, PRICE_PATH, {"token": TOKEN_GALA}, timeout=self.timeout)

        stats = await timed_burst(self.requests, _send, self.concurrency)
        if stats.transport_errors == stats.sent:
            return self.transport_record("every request in the flood failed")

        details = {
            "requestsSent": stats.sent,
            "successful": stats.successful,
            "refused": stats.failed,
            "rateLimited": stats.rate_limited,
            "timeouts": stats.transport_errors,
            "duration": f"{stats.duration_ms:.0f}ms",
        }
        return self.record(stats.failed >= self.MIN_REFUSED, details)


class PayloadHandlingProbe(BaseProbe):
    """Oversized and self-referencing token strings should be refused."""

    name = "DoS - Payload Handling"
    category = CATEGORY
    description = "Sends a 10KB token string and a recursive token definition to the price endpoint"
    fail_severity = Severity.LOW
    pass_message = "Hostile token strings rejected"
    fail_message = "Bound token string length and reject nested token definitions"

    CASES = [
        ("Large Payload", "GALA$Unit$" + "A" * 10000 + "$none"),
        ("Recursive Request", "GALA$Unit$${GALA$Unit$none$none}$none"),
    ]

    async def probe(self, client):
        cases = []
        for description, token in self.CASES:
            resp = await self.get(client, PRICE_PATH, {"token": token}, timeout=1.0)
            cases.append(self.case(description, resp, vulnerable=resp.ok))
            await self.pause()
        return self.finish(cases)


class ReentrancyProbe(BaseProbe):
    """Concurrent identical quotes must report the same post-trade price."""

    name = "Reentrancy Test"
    category = CATEGORY
    description = "Fires identical quotes in parallel and compares newSqrtPrice"
    fail_severity = Severity.MEDIUM
    pass_message = "State stays consistent under concurrent requests"
    fail_message = "Concurrent requests observe different pool state; review state locking"

    def __init__(self, requests: int = 5, concurrency: int = BURST_CONCURRENCY, **kwargs) -> None:
        super().__init__(**kwargs)
        self.requests = requests
        self.concurrency = concurrency

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(client, QUOTE_PATH, quote_params("1000", TOKEN_GALA, TOKEN_GUSDC))

        responses = await burst(self.requests, _send, self.concurrency)
        if all(r.transport_failed for r in responses):
            return self.transport_record("no quote could be fetched")

        prices = [p for p in (quote_number(r, "newSqrtPrice") for r in responses) if p is not None]
        consistent = len(set(prices)) <= 1
        return self.record(consistent, {
            "message": f"Price consistency: {str(consistent).lower()}",
            "quotes": len(prices),
            "distinctPrices": len(set(prices)),
        })
