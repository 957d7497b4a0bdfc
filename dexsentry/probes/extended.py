"""
Extended surface probes — liquidity estimates, transaction-status
enumeration and the price oracle service.
"""

from __future__ import annotations

from dexsentry.config import TOKEN_GALA, TOKEN_GUSDC
from dexsentry.models.records import Severity
from dexsentry.probes.base import BaseProbe, dig

CATEGORY = "Extended Surface"
ORACLE_FETCH_PATH = "/price-oracle/fetch-price"
GALA_TOKEN_KEY = {"collection": "GALA", "category": "Unit", "type": "none", "additionalKey": "none"}


class LiquidityEstimateProbe(BaseProbe):
    """Edge-case liquidity estimates.  Informational: the outcomes are recorded, never judged."""

    name = "Liquidity Provision Security"
    category = CATEGORY
    description = "Asks for add-liquidity estimates with zero, huge and inverted-range inputs"
    fail_severity = Severity.LOW
    pass_message = "Monitor for unusual liquidity patterns"

    PATH = "/v1/trade/add-liq-estimate"
    CASES = [
        ("Zero liquidity", {"amount": "0"}),
        ("Massive liquidity", {"amount": "999999999999999999999999"}),
        ("Invalid tick range", {"tickLower": -887272, "tickUpper": -887273}),
    ]

    async def probe(self, client):
        results = []
        for description, overrides in self.CASES:
            params = {
                "token0": TOKEN_GALA,
                "token1": TOKEN_GUSDC,
                "amount": "1000",
                "tickLower": -887220,
                "tickUpper": 887220,
                "isToken0": "true",
                "fee": 10000,
            }
            params.update(overrides)
            resp = await self.get(client, self.PATH, params)
            if resp.transport_failed:
                outcome = f"No response ({resp.error})"
            else:
                outcome = "Accepted" if resp.ok else f"Rejected (HTTP {resp.status_code})"
            results.append({"case": description, "result": outcome})
            await self.pause()

        if all(r["result"].startswith("No response") for r in results):
            return self.transport_record("no estimate could be fetched")
        return self.record(True, results)


class TransactionEnumerationProbe(BaseProbe):
    """Made-up transaction ids must not return anything."""

    name = "Transaction Enumeration"
    category = CATEGORY
    description = "Looks up guessed and malformed transaction ids"
    fail_severity = Severity.LOW
    pass_message = "Transaction IDs properly validated"
    fail_message = "Validate transaction IDs belong to requesting user"

    PATH = "/v1/trade/transaction-status"
    IDS = [
        "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
        "00000000-0000-0000-0000-000000000000",
        "test-transaction-id",
        "../../../etc/passwd",
    ]

    async def probe(self, client):
        cases = []
        for tx_id in self.IDS:
            resp = await self.get(client, self.PATH, {"id": tx_id})
            cases.append(self.case(f"Lookup {tx_id[:20]}", resp, vulnerable=resp.ok and bool(resp.data)))
            await self.pause()
        return self.finish(cases)


class PriceOracleProbe(BaseProbe):
    """Anonymous subscription and an oversized history page.  Informational."""

    name = "Price Oracle Security"
    category = CATEGORY
    description = "Subscribes to a token and fetches 10000 rows of price history"
    fail_severity = Severity.LOW
    pass_message = "Consider rate limiting on oracle queries"

    LARGE_LIMIT = 10000

    async def probe(self, client):
        subscribe = await self.post(client, "/price-oracle/subscribe-token", {
            "subscribe": True,
            "token": GALA_TOKEN_KEY,
        })
        history = await self.post(client, ORACLE_FETCH_PATH, {
            "token": TOKEN_GALA,
            "page": 1,
            "limit": self.LARGE_LIMIT,
            "from": "2020-01-01T00:00:00Z",
        })
        if subscribe.transport_failed and history.transport_failed:
            return self.transport_record(subscribe.error)

        rows = dig(history.data, "data")
        return self.record(True, {
            "subscriptionWorks": subscribe.ok and bool(subscribe.data),
            "largeLimitAccepted": history.ok and isinstance(rows, list) and len(rows) > 100,
            "note": "Oracle endpoints accessible, monitor for abuse",
        })
