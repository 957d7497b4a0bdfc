import itertools
import json

import httpx
import pytest

from dexsentry.config import TOKEN_GUSDC
from dexsentry.models.records import ProbeResponse, Severity, TransportErrorPolicy
from dexsentry.phases import ALL_PHASES, PHASES, get_phase
from dexsentry.probes.attacks import (
    ConnectionFloodProbe,
    FeeTierArbitrageProbe,
    OracleConsistencyProbe,
    PayloadHandlingProbe,
)
from dexsentry.probes.base import Attempt, above, all_of, any_of, dig, flag, missing, truthy
from dexsentry.probes.compliance import AmlKycProbe, MarketManipulationProbe
from dexsentry.probes.consensus import OrdererDosProbe
from dexsentry.probes.endpoints import BundleSubmissionProbe, HistoricalDataProbe
from dexsentry.probes.extended import LiquidityEstimateProbe, TransactionEnumerationProbe
from dexsentry.probes.flash_loan import (
    LiquidityExhaustionProbe,
    OraclePriceManipulationProbe,
    PoolManipulationProbe,
)
from dexsentry.probes.mev import JitLiquidityProbe, SandwichAttackProbe
from dexsentry.probes.network import ChannelAccessProbe, MspIdentityProbe
from dexsentry.probes.privacy import MetadataLeakageProbe, PrivateDataProbe
from dexsentry.probes.zero_day import AptSimulationProbe, NovelPatternProbe
from dexsentry.reports.remediation import REMEDIATION_GUIDE

from conftest import mock_client, refused, status

pytestmark = pytest.mark.anyio


def _body(request: httpx.Request):
    return json.loads(request.content) if request.content else None


# ── predicates ───────────────────────────────────────────────────


def test_dig_walks_nested_keys():
    assert dig({"data": {"__schema": {"types": []}}}, "data.__schema") == {"types": []}
    assert dig({"data": "flat"}, "data.__schema") is None
    assert dig(None, "anything") is None


def test_predicates():
    assert truthy("value")({"value": "secret"})
    assert not truthy("value")({"value": ""})
    assert missing("sarFiled")({})
    assert not missing("sarFiled")({"sarFiled": True})
    # flag wants a literal true, not just a truthy value
    assert flag("verified")({"verified": True})
    assert not flag("verified")({"verified": "yes"})
    assert above("found")({"found": "3"})
    assert not above("found")({"found": None})
    assert all_of(truthy("a"), missing("b"))({"a": 1})
    assert any_of(truthy("a"), truthy("b"))({"b": 1})


def test_attempt_needs_200_and_a_hit():
    attempt = Attempt("x", "/p", hit=missing("error"))

    assert attempt.accepted(ProbeResponse(status_code=200, data={}))
    assert not attempt.accepted(ProbeResponse(status_code=200, data={"error": "denied"}))
    assert not attempt.accepted(ProbeResponse(status_code=403, data={}))
    assert Attempt("any", "/p").accepted(ProbeResponse(status_code=200, data=None))


# ── fixed-request attempts ───────────────────────────────────────


async def test_any_accepted_attempt_fails_with_fail_severity():
    async with mock_client(status(200, {"identity": "accepted"})) as client:
        (record,) = await MspIdentityProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL
    assert len(record.details) == len(MspIdentityProbe.ATTEMPTS)


async def test_error_body_is_not_a_hit():
    async with mock_client(status(200, {"error": "not a channel member"})) as client:
        (record,) = await ChannelAccessProbe(delay=0).execute(client)

    assert record.passed is True


async def test_attempts_send_method_params_and_headers():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.headers.get("X-MSP-ID")))
        return httpx.Response(403, json={})

    async with mock_client(handler) as client:
        (record,) = await PrivateDataProbe(delay=0).execute(client)

    assert record.passed is True
    assert seen[0] == ("GET", "/v1/private-data/trading-secrets", "UnauthorizedMSP")
    assert [m for m, _, _ in seen[1:]] == ["POST", "POST"]


async def test_unreachable_attempts_follow_policy():
    probe = ChannelAccessProbe(policy=TransportErrorPolicy.UNKNOWN, delay=0)
    async with mock_client(refused) as client:
        (record,) = await probe.execute(client)

    assert record.passed is False
    assert record.severity == Severity.ERROR


# ── consensus and compliance floods ──────────────────────────────


async def test_orderer_accepting_flood_is_high():
    probe = OrdererDosProbe(flood=10, channels=5, payload_bytes=64, concurrency=5, delay=0)
    async with mock_client(status(200, {"txId": "t"})) as client:
        (record,) = await probe.execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert [c["vulnerable"] for c in record.details] == [True, True, True]
    assert record.metrics["floodDurationMs"] >= 0


async def test_orderer_throttling_passes():
    probe = OrdererDosProbe(flood=10, channels=5, payload_bytes=64, concurrency=5, delay=0)
    async with mock_client(status(429)) as client:
        (record,) = await probe.execute(client)

    assert record.passed is True
    assert record.details[0]["result"] == "0/10 accepted"


async def test_aml_split_trades_past_daily_limit():
    def handler(request):
        body = _body(request)
        # only the split trades of the limit user go through
        if body.get("user", {}).get("id") == "limit_test_user":
            return httpx.Response(200, json={"executed": True})
        return httpx.Response(403, json={"error": "kyc required"})

    async with mock_client(handler) as client:
        (record,) = await AmlKycProbe(trades=6, concurrency=3, delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL
    (split,) = [c for c in record.details if c["case"] == "Transaction Limit Bypass"]
    assert split["totalValue"] == 12000
    assert split["vulnerable"] is True


async def test_aml_trades_within_limit_pass():
    def handler(request):
        if _body(request).get("user", {}).get("id") == "limit_test_user":
            return httpx.Response(200, json={"executed": True})
        return httpx.Response(403, json={})

    async with mock_client(handler) as client:
        (record,) = await AmlKycProbe(trades=5, concurrency=5, delay=0).execute(client)

    # 5 x 2000 == the daily limit, not past it
    assert record.passed is True


async def test_wash_trading_pairs_completed_fails():
    async with mock_client(status(200, {"manipulationDetected": True})) as client:
        (record,) = await MarketManipulationProbe(pairs=4, concurrency=4, delay=0).execute(client)

    assert record.passed is False
    wash = record.details[0]
    assert wash["case"] == "Wash Trading"
    assert wash["result"].startswith("4/4 buy/sell pairs executed")
    assert record.details[1]["vulnerable"] is False


async def test_market_surveillance_refusing_everything_passes():
    async with mock_client(status(403)) as client:
        (record,) = await MarketManipulationProbe(pairs=4, concurrency=4, delay=0).execute(client)

    assert record.passed is True


# ── privacy and zero-day ─────────────────────────────────────────


async def test_metadata_exposed_is_medium():
    def handler(request):
        if request.url.path == "/v1/network/traffic-patterns":
            return httpx.Response(200, json={"metadata": {"userIPs": ["10.0.0.1"]}})
        return httpx.Response(200, json={"balance": "1"})

    async with mock_client(handler) as client:
        (record,) = await MetadataLeakageProbe(samples=3, delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.MEDIUM
    traffic = record.details[1]
    assert traffic["exposed"] == ["userIPs"]


async def test_metadata_hidden_passes():
    async with mock_client(status(404)) as client:
        (record,) = await MetadataLeakageProbe(samples=3, delay=0).execute(client)

    assert record.passed is True


async def test_apt_all_stages_undetected_is_critical():
    async with mock_client(status(200, {"accepted": True})) as client:
        (record,) = await AptSimulationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL


async def test_apt_two_stages_undetected_stays_high():
    stages = itertools.count()

    def handler(request):
        return httpx.Response(200, json={"threatDetected": next(stages) >= 2})

    async with mock_client(handler) as client:
        (record,) = await AptSimulationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH


async def test_apt_refused_stages_pass():
    async with mock_client(status(403)) as client:
        (record,) = await AptSimulationProbe(delay=0).execute(client)

    assert record.passed is True


async def test_novel_patterns_detected_and_injections_refused():
    def handler(request):
        if request.url.path == "/v1/search":
            return httpx.Response(400, json={"error": "rejected"})
        return httpx.Response(200, json={"threatDetected": True})

    async with mock_client(handler) as client:
        (record,) = await NovelPatternProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details[-1]["case"] == "Metamorphic Code Injection"


async def test_injections_processed_fail():
    async with mock_client(status(200, {"threatDetected": True})) as client:
        (record,) = await NovelPatternProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.details[-1]["vulnerable"] is True


# ── MEV and flash loans ──────────────────────────────────────────


def _round_trip(rate: float, reverse_gain: float):
    """GALA->GUSDC at *rate*; GUSDC->GALA returns ``amount / rate * reverse_gain``."""
    def handler(request):
        params = request.url.params
        amount = float(params["amountIn"])
        if params["tokenIn"] == TOKEN_GUSDC:
            out = amount / rate * reverse_gain
        else:
            out = amount * rate
        return httpx.Response(200, json={"data": {"amountOut": repr(out), "newSqrtPrice": "0.2"}})
    return handler


async def test_profitable_sandwich_fails():
    async with mock_client(_round_trip(0.02, 1.01)) as client:
        (record,) = await SandwichAttackProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert float(record.details["profit"]) > 0


async def test_unprofitable_sandwich_passes():
    async with mock_client(_round_trip(0.02, 0.98)) as client:
        (record,) = await SandwichAttackProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details["victimImpact"] == "0.2"


async def test_sandwich_refused_quote_passes():
    async with mock_client(status(400, {"message": "amount too large"})) as client:
        (record,) = await SandwichAttackProbe(delay=0).execute(client)

    assert record.passed is True
    assert "not executable" in record.details["message"]


async def test_cheap_round_trip_is_flash_loan_risk():
    # 0.05% loss is below the 0.09% flash loan fee
    async with mock_client(_round_trip(0.02, 0.9995)) as client:
        (record,) = await PoolManipulationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.details["lossPercent"] == "0.050%"


async def test_costly_round_trip_passes():
    async with mock_client(_round_trip(0.02, 0.98)) as client:
        (record,) = await PoolManipulationProbe(delay=0).execute(client)

    assert record.passed is True


def _oracle(new_sqrt_price: str):
    def handler(request):
        if request.url.path == "/v1/trade/price":
            return httpx.Response(200, json={"data": "0.04"})
        return httpx.Response(200, json={"data": {"amountOut": "1", "newSqrtPrice": new_sqrt_price}})
    return handler


async def test_oracle_small_impact_passes():
    # sqrt(0.04) == 0.2; 0.21 is a 5% move
    async with mock_client(_oracle("0.21")) as client:
        (record,) = await OraclePriceManipulationProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details["maxImpact"] == "5.00%"


async def test_oracle_large_impact_is_high():
    async with mock_client(_oracle("0.3")) as client:
        (record,) = await OraclePriceManipulationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH


@pytest.mark.parametrize("quote_status, passed", [(400, True), (200, False)])
async def test_liquidity_exhaustion(quote_status, passed):
    drains = []

    def handler(request):
        if request.url.path == "/v1/trade/pool":
            return httpx.Response(200, json={"data": {"Data": {"grossPoolLiquidity": "1000"}}})
        drains.append(request.url.params["amountIn"])
        return httpx.Response(quote_status, json={"data": {"amountOut": "10", "newSqrtPrice": "0.1"}})

    async with mock_client(handler) as client:
        (record,) = await LiquidityExhaustionProbe(delay=0).execute(client)

    assert drains == ["500"]
    assert record.passed is passed
    if not passed:
        assert record.severity == Severity.MEDIUM


async def test_jit_liquidity_is_informational():
    body = {"data": {"Data": {"liquidity": "123", "feeGrowthGlobal0": "4"}}}
    async with mock_client(status(200, body)) as client:
        (record,) = await JitLiquidityProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details["currentLiquidity"] == "123"


# ── attack simulation ────────────────────────────────────────────


def _fee_tiers(gap: float):
    def handler(request):
        fee = int(request.url.params["fee"])
        rate = 0.02 + (gap if fee == 500 else 0)
        return httpx.Response(200, json={"data": {"amountOut": repr(1000000 * rate)}})
    return handler


async def test_fee_tier_gap_is_arbitrage():
    async with mock_client(_fee_tiers(0.002)) as client:
        (record,) = await FeeTierArbitrageProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH


async def test_fee_tiers_aligned_pass():
    async with mock_client(_fee_tiers(0.0001)) as client:
        (record,) = await FeeTierArbitrageProbe(delay=0).execute(client)

    assert record.passed is True


async def test_oracle_prices_disagreeing_fail():
    prices = itertools.cycle(["0.01", "0.02"])

    def handler(request):
        return httpx.Response(200, json={"data": next(prices)})

    async with mock_client(handler) as client:
        (record,) = await OracleConsistencyProbe(requests=6, concurrency=3, delay=0).execute(client)

    assert record.passed is False
    assert record.details["message"] == "Price variations found: 2"


async def test_unthrottled_flood_is_critical():
    async with mock_client(status(200, {"data": "0.01"})) as client:
        (record,) = await ConnectionFloodProbe(requests=20, concurrency=10, delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL


async def test_throttled_flood_passes():
    async with mock_client(status(429)) as client:
        (record,) = await ConnectionFloodProbe(requests=20, concurrency=10, delay=0).execute(client)

    assert record.passed is True
    assert record.details["rateLimited"] == 20


async def test_hostile_token_strings_processed_is_low():
    async with mock_client(status(200, {"data": "0"})) as client:
        (record,) = await PayloadHandlingProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.LOW


# ── extended surface and endpoints ───────────────────────────────


async def test_liquidity_estimates_are_informational():
    async with mock_client(status(200, {"data": {"amount0": "1"}})) as client:
        (record,) = await LiquidityEstimateProbe(delay=0).execute(client)

    assert record.passed is True
    assert [r["result"] for r in record.details] == ["Accepted"] * 3


@pytest.mark.parametrize("code, body, passed", [
    (200, {"status": "CONFIRMED"}, False),
    (404, {"error": "not found"}, True),
])
async def test_transaction_enumeration(code, body, passed):
    async with mock_client(status(code, body)) as client:
        (record,) = await TransactionEnumerationProbe(delay=0).execute(client)

    assert record.passed is passed


async def test_malformed_bundle_accepted_is_high():
    async with mock_client(status(200, {"bundleId": "b"})) as client:
        (record,) = await BundleSubmissionProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert len(record.details) == 4


@pytest.mark.parametrize("rows, passed", [(10000, False), (500, True)])
async def test_historical_data_page_size(rows, passed):
    body = {"data": {"data": [{"price": "0.01"}] * rows}}
    async with mock_client(status(200, body)) as client:
        (record,) = await HistoricalDataProbe(delay=0).execute(client)

    assert record.passed is passed
    assert record.details["returned"] == rows


# ── registry ─────────────────────────────────────────────────────


def test_numbered_phases_run_with_all():
    assert ALL_PHASES == ("1", "2", "3", "4a", "4b", "4c", "5", "6", "7", "8", "10")
    assert get_phase("10").label == "Phase 10 - Zero-Day & APT"
    assert get_phase("FLASH-LOAN").describe() == [
        "Pool Manipulation", "Oracle Price Manipulation", "Liquidity Exhaustion",
    ]


def test_every_registered_test_has_remediation():
    names = {p.name for phase in PHASES.values() for p in phase.probes}
    assert names - set(REMEDIATION_GUIDE) == set()


def test_names_are_unique_across_phases():
    classes = {p for phase in PHASES.values() for p in phase.probes}
    names = [p.name for p in classes]
    assert len(names) == len(set(names))
