import json
import logging

import httpx
import pytest

from dexsentry.alerts import AlertManager, format_message
from dexsentry.models.records import TestRecord

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _critical():
    return TestRecord(
        name="Rate Limiting", severity="CRITICAL",
        recommendation="URGENT: Implement rate limiting immediately",
        details={"requestsSent": 50, "successful": 50},
    )


async def test_repeat_alert_is_throttled_until_window_passes(tmp_path):
    clock = FakeClock()
    alerts = AlertManager(tmp_path / "alerts.log", "", "", clock=clock)

    assert await alerts.send(_critical()) is True
    clock.now += 60
    assert await alerts.send(_critical()) is False
    clock.now += 5 * 60
    assert await alerts.send(_critical()) is True

    assert alerts.stats()["totalAlerts"] == 2


async def test_different_severity_is_a_different_alert(tmp_path):
    alerts = AlertManager(tmp_path / "alerts.log", "", "", clock=FakeClock())

    assert await alerts.send(_critical())
    assert await alerts.send(TestRecord(name="Rate Limiting", severity="HIGH"))


async def test_critical_goes_to_slack_and_webhook(tmp_path):
    seen = []

    def handler(request):
        seen.append(request.url.host)
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        alerts = AlertManager(
            tmp_path / "alerts.log",
            webhook_url="https://hooks.test/alert",
            slack_webhook_url="https://slack.test/hook",
            client=client,
        )
        await alerts.send(_critical())
        await alerts.send(TestRecord(name="Deadline Bypass", severity="HIGH"))

    assert sorted(seen) == ["hooks.test", "slack.test", "slack.test"]


async def test_webhook_failure_is_logged_not_raised(tmp_path, caplog):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
        alerts = AlertManager(tmp_path / "alerts.log", "https://hooks.test/alert", "", client=client)
        with caplog.at_level(logging.ERROR, logger="dexsentry.alerts"):
            assert await alerts.send(_critical()) is True

    assert "failed to send webhook alert" in caplog.text
    assert alerts.stats()["totalAlerts"] == 1


async def test_send_many_skips_passing_records(tmp_path):
    alerts = AlertManager(tmp_path / "alerts.log", "", "", clock=FakeClock())

    sent = await alerts.send_many([_critical(), TestRecord(name="Liquidity Drain", passed=True)])

    assert sent == 1


async def test_stats_reads_back_the_log(tmp_path):
    log_file = tmp_path / "alerts.log"
    alerts = AlertManager(log_file, "", "", clock=FakeClock())
    await alerts.send(_critical())
    await alerts.send(TestRecord(name="Quote Consistency", severity="MEDIUM"))
    with log_file.open("a", encoding="utf-8") as f:
        f.write("not json\n")

    stats = alerts.stats()

    assert stats["totalAlerts"] == 2
    assert stats["bySeverity"] == {"CRITICAL": 1, "MEDIUM": 1}
    assert stats["recentAlerts"][-1]["test"] == "Quote Consistency"
    assert json.loads(log_file.read_text().splitlines()[0])["alertKey"] == "Rate Limiting-CRITICAL"


def test_stats_without_log(tmp_path):
    assert AlertManager(tmp_path / "none.log", "", "").stats()["totalAlerts"] == 0


def test_format_message():
    text = format_message({
        "test": "Rate Limiting", "severity": "CRITICAL", "timestamp": "t",
        "recommendation": "Add a limiter", "details": None,
    })
    assert text.splitlines() == [
        "Security Alert: Rate Limiting",
        "Severity: CRITICAL",
        "Time: t",
        "Action Required: Add a limiter",
    ]
