"""
MEV probes — sandwich profitability, JIT liquidity exposure and
backrunning opportunities, all simulated through read-only quotes.
"""

from __future__ import annotations

from dexsentry.config import DEFAULT_FEE_TIER, TOKEN_GALA, TOKEN_GUSDC
from dexsentry.models.records import Severity
from dexsentry.probes.base import BaseProbe, dig
from dexsentry.probes.infrastructure import (
    QUOTE_PATH,
    amount_out,
    quote_data,
    quote_params,
)

CATEGORY = "MEV Protection"
POOL_PATH = "/v1/trade/pool"


def pool_params() -> dict:
    return {"token0": TOKEN_GALA, "token1": TOKEN_GUSDC, "fee": DEFAULT_FEE_TIER}


def reverse_params(amount: str) -> dict:
    return quote_params(amount, token_in=TOKEN_GUSDC, token_out=TOKEN_GALA)


class SandwichAttackProbe(BaseProbe):
    """Front-run a large victim trade and sell back; any profit is exploitable."""

    name = "Sandwich Attack"
    category = CATEGORY
    description = "Quotes a front-run, the victim trade and the back-run and computes attacker profit"
    fail_severity = Severity.HIGH
    pass_message = "DEX appears protected against sandwich attacks"
    fail_message = "Implement MEV protection mechanisms such as private order flow or commit-reveal"

    VICTIM_SIZE = "50000"
    FRONTRUN_SIZE = "25000"

    async def probe(self, client):
        baseline = await self.get(client, QUOTE_PATH, quote_params("100"))
        victim = await self.get(client, QUOTE_PATH, quote_params(self.VICTIM_SIZE))
        frontrun = await self.get(client, QUOTE_PATH, quote_params(self.FRONTRUN_SIZE))
        if frontrun.transport_failed:
            return self.transport_record(frontrun.error)

        bought = amount_out(frontrun)
        if bought is None:
            return self.record(True, {
                "message": f"Front-run quote refused (HTTP {frontrun.status_code}); sandwich not executable",
            })

        backrun = await self.get(client, QUOTE_PATH, reverse_params(repr(bought)))
        if backrun.transport_failed:
            return self.transport_record(backrun.error)
        returned = amount_out(backrun)
        if returned is None:
            return self.record(True, {
                "message": f"Back-run quote refused (HTTP {backrun.status_code}); sandwich not executable",
            })

        spent = float(self.FRONTRUN_SIZE)
        profit = returned - spent
        base_out = amount_out(baseline)
        details = {
            "profit": f"{profit:.2f}",
            "profitPercent": f"{profit / spent * 100:.3f}%",
            "baselineRate": base_out / 100 if base_out is not None else None,
            "victimImpact": dig(quote_data(victim), "newSqrtPrice"),
        }
        return self.record(profit <= 0, details)


class JitLiquidityProbe(BaseProbe):
    """Reports the pool state a just-in-time liquidity provider would target.

    Exploiting JIT liquidity needs real transactions, so this never fails.
    """

    name = "JIT Liquidity"
    category = CATEGORY
    description = "Reads pool liquidity and fee growth"
    fail_severity = Severity.LOW
    pass_message = "Informational; monitor for single-block liquidity positions"

    async def probe(self, client):
        resp = await self.get(client, POOL_PATH, pool_params())
        if resp.transport_failed:
            return self.transport_record(resp.error)
        pool = dig(quote_data(resp), "Data")
        if not isinstance(pool, dict):
            pool = {}
        return self.record(True, {
            "currentLiquidity": pool.get("liquidity"),
            "feeGrowth": pool.get("feeGrowthGlobal0"),
            "note": "Requires transaction execution to fully test",
        })


class BackrunningProbe(BaseProbe):
    """Quote a small reverse trade after each large trade.  Informational."""

    name = "Backrunning"
    category = CATEGORY
    description = "Pairs large GALA sells with a small reverse quote"
    fail_severity = Severity.LOW
    pass_message = "Informational; backrunning opportunities depend on mempool access"

    AMOUNTS = ["10000", "50000", "100000"]

    async def probe(self, client):
        opportunities = []
        unreachable = 0
        for amount in self.AMOUNTS:
            large = await self.get(client, QUOTE_PATH, quote_params(amount))
            back = await self.get(client, QUOTE_PATH, reverse_params("100"))
            if large.transport_failed and back.transport_failed:
                unreachable += 1
                continue
            rate = amount_out(back)
            opportunities.append({
                "tradeSize": amount,
                "priceAfter": dig(quote_data(large), "newSqrtPrice"),
                "backrunRate": f"{rate / 100:.6f}" if rate is not None else None,
            })
            await self.pause()

        if unreachable == len(self.AMOUNTS):
            return self.transport_record("no quote could be fetched")
        return self.record(True, {"opportunities": opportunities})
