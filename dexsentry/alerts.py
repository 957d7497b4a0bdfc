"""
Alert fan-out for failing probes.

Every alert is appended as one JSON line to the alerts file.  CRITICAL
alerts additionally go to the generic webhook and Slack; HIGH alerts go
to Slack only.  Repeats of the same (test, severity) pair inside the
throttle window are dropped.
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Optional

import httpx

from dexsentry.config import (
    ALERT_THROTTLE_WINDOWS,
    ALERTS_FILE,
    SLACK_WEBHOOK_URL,
    WEBHOOK_URL,
)
from dexsentry.models.records import Severity, TestRecord, utc_now

log = logging.getLogger(__name__)

_LOG_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "HIGH": logging.ERROR,
    "MEDIUM": logging.WARNING,
    "LOW": logging.INFO,
}

_SLACK_COLORS = {"CRITICAL": "#FF0000", "HIGH": "#FFA500"}


def format_message(alert: dict) -> str:
    lines = [
        f"Security Alert: {alert['test']}",
        f"Severity: {alert['severity']}",
        f"Time: {alert['timestamp']}",
    ]
    if alert.get("recommendation"):
        lines.append(f"Action Required: {alert['recommendation']}")
    if alert.get("details"):
        lines.append(f"Details: {json.dumps(alert['details'], indent=2, default=str)}")
    return "\n".join(lines)


class AlertManager:
    def __init__(
        self,
        log_file: Path | str = ALERTS_FILE,
        webhook_url: str = WEBHOOK_URL,
        slack_webhook_url: str = SLACK_WEBHOOK_URL,
        throttle_windows: Optional[dict] = None,
        clock: Callable[[], float] = time.monotonic,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.log_file = Path(log_file)
        self.webhook_url = webhook_url
        self.slack_webhook_url = slack_webhook_url
        self.throttle_windows = throttle_windows or ALERT_THROTTLE_WINDOWS
        self._clock = clock
        self._client = client
        self._last_sent: dict[str, float] = {}

    def should_throttle(self, key: str, severity: str) -> bool:
        last = self._last_sent.get(key)
        if last is None:
            return False
        window = self.throttle_windows.get(severity, self.throttle_windows["LOW"])
        return self._clock() - last < window

    async def send(self, record: TestRecord) -> bool:
        """Raise an alert for *record*.  Returns False when throttled."""
        severity = record.severity.value
        key = f"{record.name}-{severity}"
        if self.should_throttle(key, severity):
            log.debug("alert %s throttled", key)
            return False

        alert = {
            "timestamp": utc_now(),
            "severity": severity,
            "test": record.name,
            "category": record.category,
            "recommendation": record.recommendation,
            "details": record.details,
            "alertKey": key,
        }
        self._append(alert)
        log.log(
            _LOG_LEVELS.get(severity, logging.INFO),
            "[%s] %s: %s", severity, record.name, record.recommendation or "Check details",
        )

        if record.severity == Severity.CRITICAL:
            await self._post_slack(alert)
            await self._post_webhook(alert)
        elif record.severity == Severity.HIGH:
            await self._post_slack(alert)

        self._last_sent[key] = self._clock()
        return True

    async def send_many(self, records: list[TestRecord]) -> int:
        sent = 0
        for r in records:
            if not r.passed and await self.send(r):
                sent += 1
        return sent

    def _append(self, alert: dict) -> None:
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with self.log_file.open("a", encoding="utf-8") as f:
            f.write(json.dumps(alert, default=str) + "\n")

    async def _post(self, url: str, payload: dict, channel: str) -> None:
        try:
            if self._client is not None:
                resp = await self._client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    resp = await client.post(url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("failed to send %s alert: %s", channel, e)

    async def _post_slack(self, alert: dict) -> None:
        if not self.slack_webhook_url:
            log.debug("slack integration not configured")
            return
        await self._post(self.slack_webhook_url, {
            "attachments": [{
                "color": _SLACK_COLORS.get(alert["severity"], "#0000FF"),
                "text": format_message(alert),
                "footer": "dexsentry security monitor",
                "ts": int(time.time()),
            }],
        }, "slack")

    async def _post_webhook(self, alert: dict) -> None:
        if not self.webhook_url:
            log.debug("webhook integration not configured")
            return
        await self._post(self.webhook_url, alert, "webhook")

    def stats(self) -> dict:
        """Totals read back from the alerts file."""
        stats = {"totalAlerts": 0, "bySeverity": {}, "recentAlerts": []}
        if not self.log_file.exists():
            return stats

        alerts = []
        for line in self.log_file.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                alerts.append(json.loads(line))
            except json.JSONDecodeError:
                log.warning("skipping unreadable alert line")
        stats["totalAlerts"] = len(alerts)
        for a in alerts:
            sev = a.get("severity", "UNKNOWN")
            stats["bySeverity"][sev] = stats["bySeverity"].get(sev, 0) + 1
        stats["recentAlerts"] = alerts[-10:]
        return stats
