import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import httpx

from dexsentry.config import (
    PROBE_DELAY,
    RESPONSE_CAP,
    TRANSPORT_ERROR_POLICY,
)
from dexsentry.models.records import (
    ProbeResponse,
    Severity,
    TestRecord,
    TransportErrorPolicy,
)

log = logging.getLogger(__name__)

ProbeOutcome = Union[TestRecord, list[TestRecord]]


class BaseProbe(ABC):
    """
    Abstract base class for every attack-category probe.

    Subclass and implement:
      - probe()

    The base class handles request sending, transport-error judgement
    and TestRecord construction.  A probe never raises an httpx error
    past ``execute()``; anything else it raises is the Phase Runner's
    problem.
    """

    name: str = "base"
    category: str = ""
    description: str = ""
    # Severity reported when the probe finds the target vulnerable
    fail_severity: Severity = Severity.HIGH
    pass_message: str = ""
    fail_message: str = ""

    def __init__(
        self,
        policy: Optional[TransportErrorPolicy] = None,
        delay: float = PROBE_DELAY,
    ) -> None:
        self.policy = policy or TransportErrorPolicy(TRANSPORT_ERROR_POLICY)
        self.delay = delay

    # ── Abstract interface ────────────────────────────────────────────

    @abstractmethod
    async def probe(self, client: httpx.AsyncClient) -> ProbeOutcome:
        """Send the crafted requests and judge the responses."""
        ...

    # ── Public API ────────────────────────────────────────────────────

    async def execute(self, client: httpx.AsyncClient) -> list[TestRecord]:
        """Run the probe and always come back with at least one record."""
        try:
            outcome = await self.probe(client)
        except httpx.TransportError as e:
            log.debug("%s: transport error escaped probe: %s", self.name, e)
            outcome = self.transport_record(e)

        records = outcome if isinstance(outcome, list) else [outcome]
        for r in records:
            log.info(
                "%s %s: %s",
                "PASS" if r.passed else "FAIL", r.name,
                "passed" if r.passed else r.severity.value,
            )
        return records

    # ── Helpers for subclasses ────────────────────────────────────────

    async def send(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        params: dict | None = None,
        json_body=None,
        headers: dict | None = None,
        timeout: float | None = None,
    ) -> ProbeResponse:
        """Fire one request.  Status codes never raise; transport errors
        come back as ``status_code == 0`` with ``error`` set."""
        kwargs = {"params": params, "headers": headers}
        if json_body is not None:
            kwargs["json"] = json_body
        if timeout is not None:
            kwargs["timeout"] = timeout

        start = time.perf_counter()
        try:
            resp = await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            elapsed = round((time.perf_counter() - start) * 1000, 2)
            log.debug("%s %s failed: %s", method, path, e)
            return ProbeResponse(
                status_code=0,
                elapsed_ms=elapsed,
                error=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
            )

        elapsed = round((time.perf_counter() - start) * 1000, 2)
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError):
            data = None
        return ProbeResponse(
            status_code=resp.status_code,
            body=resp.text[:RESPONSE_CAP],
            data=data,
            headers=dict(resp.headers),
            elapsed_ms=elapsed,
        )

    async def get(self, client, path, params=None, **kwargs) -> ProbeResponse:
        return await self.send(client, "GET", path, params=params, **kwargs)

    async def post(self, client, path, body=None, **kwargs) -> ProbeResponse:
        return await self.send(client, "POST", path, json_body=body, **kwargs)

    async def pause(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    def transport_verdict(self) -> Optional[bool]:
        """Vulnerable? for a case that never got an HTTP response.

        ``None`` means inconclusive.
        """
        if self.policy == TransportErrorPolicy.PASS:
            return False
        if self.policy == TransportErrorPolicy.FAIL:
            return True
        return None

    def record(
        self,
        passed: bool,
        details=None,
        recommendation: Optional[str] = None,
        severity: Optional[Severity] = None,
        name: Optional[str] = None,
        metrics: Optional[dict] = None,
    ) -> TestRecord:
        if recommendation is None:
            recommendation = self.pass_message if passed else self.fail_message
        return TestRecord(
            name=name or self.name,
            category=self.category,
            passed=passed,
            severity=Severity.PASS if passed else (severity or self.fail_severity),
            details=details,
            recommendation=recommendation or None,
            metrics=metrics,
        )

    def transport_record(self, error) -> TestRecord:
        """Single-record verdict when the whole probe could not reach the target."""
        verdict = self.transport_verdict()
        details = {"error": f"Target unreachable: {error}", "policy": self.policy.value}
        if verdict is False:
            return self.record(
                True, details,
                recommendation="Request rejected before a response was received",
            )
        if verdict is True:
            return self.record(False, details)
        return self.record(
            False, details,
            severity=Severity.ERROR,
            recommendation="Target unreachable; re-run to obtain a verdict",
        )

    def finish(
        self,
        cases: list[dict],
        details=None,
        severity: Optional[Severity] = None,
        metrics: Optional[dict] = None,
    ) -> TestRecord:
        """Fold per-case verdicts into one record.

        Each case carries ``vulnerable``: True, False or None (inconclusive).
        """
        vulnerable = [c for c in cases if c.get("vulnerable") is True]
        inconclusive = [c for c in cases if c.get("vulnerable") is None]
        evidence = cases if details is None else details

        if vulnerable:
            return self.record(False, evidence, severity=severity, metrics=metrics)
        if inconclusive:
            return self.record(
                False, evidence,
                severity=Severity.ERROR,
                recommendation=(
                    f"{len(inconclusive)} case(s) got no response; "
                    "re-run to obtain a verdict"
                ),
                metrics=metrics,
            )
        return self.record(True, evidence, metrics=metrics)

    def case(self, description: str, response: ProbeResponse, vulnerable: Optional[bool]) -> dict:
        """Standard evidence entry for one test case."""
        if response.transport_failed:
            vulnerable = self.transport_verdict()
            result = f"No response ({response.error})"
        elif vulnerable:
            result = f"Accepted (HTTP {response.status_code}) - VULNERABILITY"
        else:
            result = f"Rejected (HTTP {response.status_code})"
        return {
            "case": description,
            "status": response.status_code,
            "result": result,
            "vulnerable": vulnerable,
        }

    def burst_case(self, description: str, stats, vulnerable: bool) -> dict:
        """``case()`` for a whole burst of identical requests."""
        if stats.transport_errors == stats.sent:
            return {
                "case": description,
                "status": 0,
                "result": "No response to any request",
                "vulnerable": self.transport_verdict(),
            }
        result = f"{stats.successful}/{stats.sent} accepted"
        return {
            "case": description,
            "status": stats.statuses.most_common(1)[0][0],
            "result": f"{result} - VULNERABILITY" if vulnerable else result,
            "vulnerable": vulnerable,
        }


# ── Fixed-request probes ──────────────────────────────────────────────


@dataclass(frozen=True)
class Attempt:
    """One crafted request and what counts as the target going along with it."""

    description: str
    path: str
    body: Any = None
    method: str = "POST"
    headers: Optional[dict] = None
    params: Optional[dict] = None
    # Judged on the decoded body of a 200; None means any 200 is a hit
    hit: Optional[Callable[[Any], bool]] = None

    def accepted(self, response: ProbeResponse) -> bool:
        if response.status_code != 200:
            return False
        return self.hit is None or bool(self.hit(response.data))


class AttemptProbe(BaseProbe):
    """
    Probe built from a fixed list of ``Attempt``s.

    Every attempt is sent once, in order; the probe fails with
    ``fail_severity`` when any of them is accepted.
    """

    ATTEMPTS: list[Attempt] = []

    async def probe(self, client):
        return self.finish(await self.attempt_cases(client))

    async def attempt_cases(self, client) -> list[dict]:
        cases = []
        for attempt in self.ATTEMPTS:
            resp = await self.send(
                client, attempt.method, attempt.path,
                params=attempt.params,
                json_body=attempt.body,
                headers=attempt.headers,
            )
            cases.append(self.case(attempt.description, resp, vulnerable=attempt.accepted(resp)))
            await self.pause()
        return cases


def dig(data, key: str):
    """``dig(body, "data.__schema")`` — None as soon as a level is missing."""
    for part in key.split("."):
        if not isinstance(data, dict):
            return None
        data = data.get(part)
    return data


def truthy(*keys: str) -> Callable[[Any], bool]:
    return lambda data: any(dig(data, k) for k in keys)


def missing(*keys: str) -> Callable[[Any], bool]:
    """Hit when none of *keys* is set, e.g. a report that was never filed."""
    return lambda data: not any(dig(data, k) for k in keys)


def flag(*keys: str) -> Callable[[Any], bool]:
    """Hit when any of *keys* is literally ``true``."""
    return lambda data: any(dig(data, k) is True for k in keys)


def above(key: str, threshold: float = 0) -> Callable[[Any], bool]:
    def _check(data) -> bool:
        try:
            return float(dig(data, key)) > threshold
        except (TypeError, ValueError):
            return False
    return _check


def all_of(*checks: Callable[[Any], bool]) -> Callable[[Any], bool]:
    return lambda data: all(c(data) for c in checks)


def any_of(*checks: Callable[[Any], bool]) -> Callable[[Any], bool]:
    return lambda data: any(c(data) for c in checks)


def rejected(response: ProbeResponse) -> bool:
    """Target refused the input with a 4xx."""
    return 400 <= response.status_code < 500


def error_message(response: ProbeResponse) -> str:
    data = response.data
    if isinstance(data, dict):
        for key in ("message", "error"):
            val = data.get(key)
            if isinstance(val, str):
                return val
    return ""
