"""
Flash-loan probes — round-trip manipulation cost, oracle impact of large
trades and pool exhaustion.
"""

from __future__ import annotations

import math
from typing import Optional

from dexsentry.config import TOKEN_GALA
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import BaseProbe, dig
from dexsentry.probes.infrastructure import (
    PRICE_PATH,
    QUOTE_PATH,
    amount_out,
    quote_number,
    quote_params,
)
from dexsentry.probes.mev import POOL_PATH, pool_params, reverse_params

CATEGORY = "Flash Loan Risks"


def spot_price(response: ProbeResponse) -> Optional[float]:
    if not response.ok:
        return None
    try:
        return float(dig(response.data, "data"))
    except (TypeError, ValueError):
        return None


class PoolManipulationProbe(BaseProbe):
    """Borrow, swap and swap back: cheaper than a flash-loan fee is exploitable."""

    name = "Pool Manipulation"
    category = CATEGORY
    description = "Round-trips a 10M GALA borrow through the pool and measures the loss"
    fail_severity = Severity.HIGH
    pass_message = "Round-trip cost exceeds typical flash loan fees"
    fail_message = "Implement flash loan protection mechanisms"

    BORROW_AMOUNT = "10000000"
    # Typical flash loan fee, percent
    FLASH_LOAN_FEE_PCT = 0.09

    async def probe(self, client):
        swap = await self.get(client, QUOTE_PATH, quote_params(self.BORROW_AMOUNT))
        if swap.transport_failed:
            return self.transport_record(swap.error)
        out = amount_out(swap)
        if out is None:
            return self.record(True, {
                "message": f"Borrow-sized quote refused (HTTP {swap.status_code})",
            })

        reverse = await self.get(client, QUOTE_PATH, reverse_params(repr(out)))
        if reverse.transport_failed:
            return self.transport_record(reverse.error)
        returned = amount_out(reverse)
        if returned is None:
            return self.record(True, {
                "message": f"Repayment quote refused (HTTP {reverse.status_code})",
            })

        borrowed = float(self.BORROW_AMOUNT)
        loss = borrowed - returned
        loss_pct = loss / borrowed * 100
        details = {
            "borrowAmount": self.BORROW_AMOUNT,
            "returnedAmount": f"{returned:.2f}",
            "loss": f"{loss:.2f}",
            "lossPercent": f"{loss_pct:.3f}%",
            "flashLoanFeeThreshold": f"{self.FLASH_LOAN_FEE_PCT}%",
        }
        return self.record(loss_pct >= self.FLASH_LOAN_FEE_PCT, details)


class OraclePriceManipulationProbe(BaseProbe):
    """Compare the spot price with the sqrt price a large trade would leave behind."""

    name = "Oracle Price Manipulation"
    category = CATEGORY
    description = "Measures how far large trades would move the pool price the oracle reads"
    fail_severity = Severity.HIGH
    pass_message = "Large trades do not move the oracle price excessively"
    fail_message = "Use TWAP oracles and cap per-trade price impact"

    AMOUNTS = ["100000", "1000000", "10000000"]
    MAX_IMPACT_PCT = 10.0

    async def probe(self, client):
        impacts = []
        unreachable = 0
        for amount in self.AMOUNTS:
            price = await self.get(client, PRICE_PATH, {"token": TOKEN_GALA})
            trade = await self.get(client, QUOTE_PATH, quote_params(amount))
            if price.transport_failed or trade.transport_failed:
                unreachable += 1
                continue
            before = spot_price(price)
            after = quote_number(trade, "newSqrtPrice")
            if not before or before < 0 or after is None:
                impacts.append({"amount": amount, "error": f"HTTP {price.status_code}/{trade.status_code}"})
                continue
            root = math.sqrt(before)
            impacts.append({"amount": amount, "impact": abs(after - root) / root * 100})
            await self.pause()

        if unreachable == len(self.AMOUNTS):
            return self.transport_record("no price or quote could be fetched")

        measured = [i["impact"] for i in impacts if "impact" in i]
        max_impact = max(measured) if measured else 0.0
        for i in impacts:
            if "impact" in i:
                i["impact"] = f"{i['impact']:.3f}%"
        details = {
            "priceImpacts": impacts,
            "maxImpact": f"{max_impact:.2f}%",
            "note": "Large trades can move prices, but TWAP oracles mitigate instant manipulation",
        }
        return self.record(max_impact <= self.MAX_IMPACT_PCT, details)


class LiquidityExhaustionProbe(BaseProbe):
    """Quote a trade worth half the pool's gross liquidity; it should be refused."""

    name = "Liquidity Exhaustion"
    category = CATEGORY
    description = "Asks for a quote draining 50% of the pool"
    fail_severity = Severity.MEDIUM
    pass_message = "Pool protected - large drain attempt rejected"
    fail_message = "Cap trade size relative to pool liquidity"

    DRAIN_SHARE = 0.5

    async def probe(self, client):
        pool = await self.get(client, POOL_PATH, pool_params())
        if pool.transport_failed:
            return self.transport_record(pool.error)
        try:
            liquidity = float(dig(pool.data, "data.Data.grossPoolLiquidity"))
        except (TypeError, ValueError):
            return self.record(True, {
                "message": f"Pool liquidity not disclosed (HTTP {pool.status_code})",
            })

        drain = f"{liquidity * self.DRAIN_SHARE:.0f}"
        resp = await self.get(client, QUOTE_PATH, quote_params(drain))
        if resp.transport_failed:
            return self.transport_record(resp.error)
        details = {
            "poolLiquidity": f"{liquidity:.2f}",
            "drainAmount": drain,
            "status": resp.status_code,
        }
        if not resp.ok:
            return self.record(True, details)
        details["priceAfterDrain"] = quote_number(resp, "newSqrtPrice")
        return self.record(False, details)
