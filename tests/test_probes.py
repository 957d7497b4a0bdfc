import asyncio
import json
import time
from collections import Counter

import httpx
import pytest

from dexsentry.config import TOKEN_GUSDC
from dexsentry.models.records import ProbeResponse, Severity, TransportErrorPolicy
from dexsentry.probes import performance
from dexsentry.probes.access import AdminEndpointProbe, ChaincodeAccessProbe, PoolCreationProbe
from dexsentry.probes.bridge import (
    BridgeConfigEnumerationProbe,
    BridgeInputValidationProbe,
    BridgeStatusDisclosureProbe,
)
from dexsentry.probes.burst import BurstStats, burst, timed_burst
from dexsentry.probes.infrastructure import LiquidityDrainProbe, PrecisionProbe, RateLimitProbe
from dexsentry.probes.performance import (
    ConcurrentLoadProbe,
    DegradationProbe,
    ResponseTimeBaselineProbe,
)
from dexsentry.probes.time_based import (
    DeadlineBypassProbe,
    ReplayProtectionProbe,
    TimestampManipulationProbe,
)
from dexsentry.probes.validation import (
    ErrorLeakageProbe,
    InputValidationProbe,
    QuoteConsistencyProbe,
    TokenValidationProbe,
)

from conftest import mock_client, refused, status

pytestmark = pytest.mark.anyio


# ── transport-error policy ───────────────────────────────────────


async def test_connection_refused_counts_as_pass_by_default():
    probe = RateLimitProbe(requests=5, concurrency=5, policy=TransportErrorPolicy.PASS, delay=0)
    async with mock_client(refused) as client:
        records = await probe.execute(client)

    assert len(records) == 1
    assert records[0].passed is True
    assert records[0].severity == Severity.PASS
    assert "Target unreachable" in records[0].details["error"]


async def test_connection_refused_under_fail_policy():
    probe = RateLimitProbe(requests=5, concurrency=5, policy=TransportErrorPolicy.FAIL, delay=0)
    async with mock_client(refused) as client:
        (record,) = await probe.execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL


async def test_connection_refused_under_unknown_policy():
    probe = InputValidationProbe(policy=TransportErrorPolicy.UNKNOWN, delay=0)
    async with mock_client(refused) as client:
        (record,) = await probe.execute(client)

    assert record.passed is False
    assert record.severity == Severity.ERROR


async def test_case_probe_refused_passes_under_pass_policy():
    probe = PoolCreationProbe(policy=TransportErrorPolicy.PASS, delay=0)
    async with mock_client(refused) as client:
        (record,) = await probe.execute(client)

    assert record.passed is True
    assert all(c["status"] == 0 for c in record.details)


async def test_timeout_is_a_transport_error():
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    probe = LiquidityDrainProbe(policy=TransportErrorPolicy.PASS, delay=0)
    async with mock_client(slow) as client:
        (record,) = await probe.execute(client)

    assert record.passed is True


# ── rate limiting ────────────────────────────────────────────────


async def test_rate_limit_missing_is_critical():
    probe = RateLimitProbe(requests=20, concurrency=5, delay=0)
    async with mock_client(status(200, {"data": {"price": "0.01"}})) as client:
        (record,) = await probe.execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL
    assert record.details["requestsSent"] == 20
    assert record.details["successful"] == 20
    assert record.details["rateLimited"] == 0


async def test_rate_limit_detected_when_429_seen():
    seen = {"n": 0}

    def handler(request):
        seen["n"] += 1
        return httpx.Response(429 if seen["n"] > 10 else 200, json={})

    probe = RateLimitProbe(requests=20, concurrency=5, delay=0)
    async with mock_client(handler) as client:
        (record,) = await probe.execute(client)

    assert record.passed is True
    assert record.details["rateLimited"] == 10


# ── bounded fan-out ──────────────────────────────────────────────


async def test_burst_never_exceeds_concurrency():
    in_flight = {"now": 0, "max": 0}

    async def send(i):
        in_flight["now"] += 1
        in_flight["max"] = max(in_flight["max"], in_flight["now"])
        await asyncio.sleep(0.001)
        in_flight["now"] -= 1
        return ProbeResponse(status_code=200, elapsed_ms=float(i))

    results = await burst(30, send, concurrency=4)

    assert in_flight["max"] <= 4
    # each request fills its own slot
    assert [r.elapsed_ms for r in results] == [float(i) for i in range(30)]


async def test_timed_burst_counts_outcomes():
    async def send(i):
        if i % 3 == 0:
            return ProbeResponse(status_code=0, error="ConnectError")
        return ProbeResponse(status_code=429 if i % 3 == 1 else 200, elapsed_ms=2.0)

    stats = await timed_burst(9, send, concurrency=3)

    assert stats.sent == 9
    assert stats.transport_errors == 3
    assert stats.rate_limited == 3
    assert stats.successful == 3
    assert stats.avg_ms == 2.0


# ── case-based probes ────────────────────────────────────────────


async def test_input_validation_all_rejected_passes():
    async with mock_client(status(400, {"error": "Invalid amount"})) as client:
        (record,) = await InputValidationProbe(delay=0).execute(client)

    assert record.passed is True


async def test_input_validation_accepted_is_medium():
    async with mock_client(status(200, {"data": {"amountOut": "1"}})) as client:
        (record,) = await InputValidationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.MEDIUM
    assert all("VULNERABILITY" in c["result"] for c in record.details)


async def test_input_validation_server_error_is_high():
    async with mock_client(status(500, {"error": "boom"})) as client:
        (record,) = await InputValidationProbe(delay=0).execute(client)

    assert record.severity == Severity.HIGH


async def test_pool_creation_accepted_is_vulnerable():
    async with mock_client(status(201, {"status": "created"})) as client:
        (record,) = await PoolCreationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert record.name == "Pool Creation Security"


async def test_replay_accepted_twice_fails():
    async with mock_client(status(200, {"status": "ok"})) as client:
        (record,) = await ReplayProtectionProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.details[1]["vulnerable"] is True


async def test_replay_second_rejected_passes():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(200 if calls["n"] == 1 else 409, json={})

    async with mock_client(handler) as client:
        (record,) = await ReplayProtectionProbe(delay=0).execute(client)

    assert record.passed is True


async def test_error_leakage_detects_stack_trace():
    body = {"error": "Internal Server Error", "stack": "at handler (/home/app/server.js:10)"}
    async with mock_client(status(500, body)) as client:
        (record,) = await ErrorLeakageProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.details[0]["patterns"]


async def test_quote_consistency_disagreeing_quotes_fail():
    amounts = iter(["1.0", "1.1"] * 10)

    def handler(request):
        return httpx.Response(200, json={"data": {"amountOut": next(amounts)}})

    async with mock_client(handler) as client:
        (record,) = await QuoteConsistencyProbe(requests=6, concurrency=3, delay=0).execute(client)

    assert record.passed is False
    assert "Inconsistent" in record.details["message"]


# ── bridge and load ──────────────────────────────────────────────


async def test_bridge_config_enumeration_is_informational():
    body = {"data": {"tokens": [{"symbol": "GALA"}, {"symbol": "GUSDC"}]}}
    async with mock_client(status(200, body)) as client:
        (record,) = await BridgeConfigEnumerationProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details["totalConfigs"] == 2
    assert record.details["tokens"] == ["GALA", "GUSDC"]


async def test_bridge_input_validation_unexpected_errors_fail():
    async with mock_client(status(502)) as client:
        (record,) = await BridgeInputValidationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.MEDIUM
    assert record.details["vulnerableInputs"] == record.details["testedInputs"]


async def test_concurrent_load_429_is_not_dropped():
    async with mock_client(status(429)) as client:
        (record,) = await ConcurrentLoadProbe(levels=(5, 10), concurrency=5, delay=0).execute(client)

    assert record.passed is True


async def test_concurrent_load_server_errors_fail():
    async with mock_client(status(503)) as client:
        (record,) = await ConcurrentLoadProbe(levels=(5,), concurrency=5, delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert record.details["rounds"][0]["failed"] == 5


# ── quote arithmetic ─────────────────────────────────────────────


def _quote_handler(rate_for, reverse_factor: float = 1.0):
    """Quote endpoint: forward at ``rate_for(amount)``, reverse at *reverse_factor*."""
    def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        amount = float(params["amountIn"])
        if params["tokenIn"] == TOKEN_GUSDC:
            out = amount * reverse_factor
        else:
            out = amount * rate_for(amount)
        return httpx.Response(200, json={"data": {"amountOut": repr(out)}})
    return handler


async def test_liquidity_drain_flat_rate_passes():
    async with mock_client(_quote_handler(lambda a: 0.02)) as client:
        (record,) = await LiquidityDrainProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details["maxImpact"] == "0.00%"


async def test_liquidity_drain_impact_over_threshold_is_high():
    # rate halves from 1M upwards: a 50% step between consecutive sizes
    async with mock_client(_quote_handler(lambda a: 0.01 if a >= 1000000 else 0.02)) as client:
        (record,) = await LiquidityDrainProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert float(record.details["maxImpact"].rstrip("%")) > LiquidityDrainProbe.MAX_IMPACT_PCT


async def test_liquidity_drain_impact_at_threshold_passes():
    async with mock_client(_quote_handler(lambda a: 0.0185 if a >= 1000000 else 0.02)) as client:
        (record,) = await LiquidityDrainProbe(delay=0).execute(client)

    assert record.passed is True


async def test_precision_lossless_round_trip_passes():
    async with mock_client(_quote_handler(lambda a: 1.0)) as client:
        (record,) = await PrecisionProbe(delay=0).execute(client)

    assert record.passed is True
    assert record.details["issuesFound"] == 0


async def test_precision_loss_on_many_cases_is_medium():
    async with mock_client(_quote_handler(lambda a: 1.0, reverse_factor=0.9)) as client:
        (record,) = await PrecisionProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.MEDIUM
    assert record.details["issuesFound"] > 2


async def test_precision_loss_on_two_cases_is_low():
    # only the two amounts above 100 lose more than ACCEPTABLE_LOSS
    def rate(amount):
        return 0.9 if amount > 100 else 1.0

    async with mock_client(_quote_handler(rate)) as client:
        (record,) = await PrecisionProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.LOW
    assert {i["case"] for i in record.details["issues"]} == {"Repeating decimal", "Large with dust"}


async def test_precision_rejected_inputs_are_not_issues():
    async with mock_client(status(400, {"message": "bad amount"})) as client:
        (record,) = await PrecisionProbe(delay=0).execute(client)

    assert record.passed is True


# ── validation and access ────────────────────────────────────────


async def test_token_validation_rejected_passes():
    async with mock_client(status(400, {"message": "invalid token"})) as client:
        (record,) = await TokenValidationProbe(delay=0).execute(client)

    assert record.passed is True


async def test_token_validation_not_found_passes():
    async with mock_client(status(404)) as client:
        (record,) = await TokenValidationProbe(delay=0).execute(client)

    assert record.passed is True


async def test_token_validation_priced_fake_token_is_high():
    async with mock_client(status(200, {"data": "0.01"})) as client:
        (record,) = await TokenValidationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert all(c["vulnerable"] for c in record.details)


async def test_chaincode_access_granted_is_critical():
    async with mock_client(status(200, {"result": "ok"})) as client:
        (record,) = await ChaincodeAccessProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.CRITICAL
    assert len(record.details) == 3


async def test_chaincode_access_forbidden_passes():
    async with mock_client(status(403)) as client:
        (record,) = await ChaincodeAccessProbe(delay=0).execute(client)

    assert record.passed is True


async def test_admin_endpoint_answering_is_high():
    def handler(request):
        return httpx.Response(200 if request.url.path == "/admin" else 404, json={})

    async with mock_client(handler) as client:
        (record,) = await AdminEndpointProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    assert [c["case"] for c in record.details if c["vulnerable"]] == ["/admin"]


async def test_admin_endpoint_hidden_passes():
    async with mock_client(status(401)) as client:
        (record,) = await AdminEndpointProbe(delay=0).execute(client)

    assert record.passed is True


# ── time-based ───────────────────────────────────────────────────


async def test_timestamp_accepted_is_high():
    async with mock_client(status(200, {"txId": "abc"})) as client:
        (record,) = await TimestampManipulationProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH


async def test_timestamp_error_body_mentioning_timestamp_passes():
    async with mock_client(status(200, {"message": "invalid timestamp"})) as client:
        (record,) = await TimestampManipulationProbe(delay=0).execute(client)

    assert record.passed is True


async def test_timestamp_rejected_passes():
    async with mock_client(status(400, {"message": "bad request"})) as client:
        (record,) = await TimestampManipulationProbe(delay=0).execute(client)

    assert record.passed is True


def _deadline_gate(request: httpx.Request) -> httpx.Response:
    """Reject only deadlines that are already past."""
    deadline = json.loads(request.content).get("deadline")
    if deadline is not None and deadline <= time.time() * 1000:
        return httpx.Response(400, json={"message": "deadline expired"})
    return httpx.Response(200, json={"txId": "abc"})


async def test_deadline_only_past_deadlines_must_fail():
    async with mock_client(_deadline_gate) as client:
        (record,) = await DeadlineBypassProbe(delay=0).execute(client)

    # missing and far-future deadlines are accepted without counting against the target
    assert record.passed is True
    accepted = {c["case"] for c in record.details if c["status"] == 200}
    assert accepted == {"No Deadline", "Infinite Deadline"}


async def test_deadline_accepting_everything_flags_expired_cases():
    async with mock_client(status(200, {"txId": "abc"})) as client:
        (record,) = await DeadlineBypassProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.HIGH
    flagged = {c["case"] for c in record.details if c["vulnerable"]}
    assert flagged == {"Expired Deadline", "Immediate Expiry", "Zero Deadline"}


# ── bridge status ────────────────────────────────────────────────


async def test_bridge_status_with_data_is_low():
    async with mock_client(status(200, {"status": "PENDING"})) as client:
        (record,) = await BridgeStatusDisclosureProbe(delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.LOW
    assert "Returns data for invalid hash" in record.details[0]["result"]


async def test_bridge_status_empty_body_passes():
    async with mock_client(status(200, {})) as client:
        (record,) = await BridgeStatusDisclosureProbe(delay=0).execute(client)

    assert record.passed is True


async def test_bridge_status_rejected_passes():
    async with mock_client(status(400, {"error": "invalid hash"})) as client:
        (record,) = await BridgeStatusDisclosureProbe(delay=0).execute(client)

    assert record.passed is True


# ── response time and degradation ────────────────────────────────


async def test_response_time_under_threshold_passes(monkeypatch):
    monkeypatch.setattr(performance, "SLOW_RESPONSE_MS", 10_000)
    async with mock_client(status(200, {"data": "0.01"})) as client:
        (record,) = await ResponseTimeBaselineProbe(samples=2, delay=0).execute(client)

    assert record.passed is True
    assert [t["endpoint"] for t in record.details["timings"]] == ["Price", "Quote", "Pool"]


async def test_response_time_over_threshold_is_medium(monkeypatch):
    monkeypatch.setattr(performance, "SLOW_RESPONSE_MS", -1)
    async with mock_client(status(200, {"data": "0.01"})) as client:
        (record,) = await ResponseTimeBaselineProbe(samples=2, delay=0).execute(client)

    assert record.passed is False
    assert record.severity == Severity.MEDIUM
    assert record.details["message"].startswith("Slow endpoints: Price")


def _fixed_durations(monkeypatch, durations: dict):
    """Replace the burst with one whose duration depends only on its size."""
    async def fake_timed_burst(count, send, concurrency):
        return BurstStats(sent=count, duration_ms=durations[count], statuses=Counter({200: count}))

    monkeypatch.setattr(performance, "timed_burst", fake_timed_burst)


@pytest.mark.parametrize("last, severity", [
    (150.0, None),
    (250.0, Severity.MEDIUM),
    (350.0, Severity.HIGH),
])
async def test_degradation_thresholds(monkeypatch, last, severity):
    _fixed_durations(monkeypatch, {10: 100.0, 30: last})
    probe = DegradationProbe(levels=(10, 30), repeats=1, settle=0, delay=0)
    async with mock_client(status(200)) as client:
        (record,) = await probe.execute(client)

    if severity is None:
        assert record.passed is True
    else:
        assert record.passed is False
        assert record.severity == severity


async def test_degradation_exactly_double_is_medium_not_high(monkeypatch):
    _fixed_durations(monkeypatch, {10: 100.0, 30: 300.0})
    probe = DegradationProbe(levels=(10, 30), repeats=1, settle=0, delay=0)
    async with mock_client(status(200)) as client:
        (record,) = await probe.execute(client)

    assert record.severity == Severity.MEDIUM
    assert record.details["degradationPercent"] == "200.00%"
