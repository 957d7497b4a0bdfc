"""
Phase Runner — run one phase's probes in declaration order, fold their
records into a PhaseResult and persist it.

A probe that blows up is recorded as a synthetic ERROR record; the
phase always runs to the end.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from dexsentry.alerts import AlertManager
from dexsentry.config import DEFAULT_HEADERS, REQUEST_TIMEOUT, TARGET_BASE_URL
from dexsentry.models.records import PhaseResult, Severity, TestRecord, TransportErrorPolicy
from dexsentry.phases import Phase
from dexsentry.probes.base import BaseProbe
from dexsentry.storage.results import ResultStore

log = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """What one ``run_phase`` call hands back to its caller."""
    result: PhaseResult
    path: Optional[Path] = None
    alerts_sent: int = 0
    errors: list[str] = field(default_factory=list)


def error_record(probe: BaseProbe, exc: Exception) -> TestRecord:
    return TestRecord(
        name=probe.name,
        category=probe.category,
        passed=False,
        severity=Severity.ERROR,
        details={"error": f"{type(exc).__name__}: {exc}"},
        recommendation="Probe crashed before reaching a verdict; check the logs and re-run",
    )


class PhaseRunner:
    def __init__(
        self,
        store: Optional[ResultStore] = None,
        base_url: str = TARGET_BASE_URL,
        policy: Optional[TransportErrorPolicy] = None,
        alerts: Optional[AlertManager] = None,
        concurrency: Optional[int] = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        probe_options: Optional[dict] = None,
    ) -> None:
        self.store = store or ResultStore()
        self.base_url = base_url
        self.policy = policy
        self.alerts = alerts
        self.concurrency = concurrency
        self.timeout = timeout
        self.transport = transport
        # per-probe-class constructor overrides, keyed by class name
        self.probe_options = probe_options or {}

    def build_probes(self, phase: Phase) -> list[BaseProbe]:
        probes = []
        for probe_cls in phase.probes:
            kwargs = dict(self.probe_options.get(probe_cls.__name__, {}))
            kwargs.setdefault("policy", self.policy)
            if self.concurrency is not None and _accepts(probe_cls, "concurrency"):
                kwargs.setdefault("concurrency", self.concurrency)
            probes.append(probe_cls(**kwargs))
        return probes

    def _client(self) -> httpx.AsyncClient:
        kwargs = {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "headers": DEFAULT_HEADERS,
            "follow_redirects": False,
        }
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    async def run_probes(self, probes: list[BaseProbe]) -> list[TestRecord]:
        records: list[TestRecord] = []
        async with self._client() as client:
            for probe in probes:
                log.info("running %s", probe.name)
                try:
                    records.extend(await probe.execute(client))
                except Exception as e:
                    log.error("%s crashed: %s: %s", probe.name, type(e).__name__, e)
                    records.append(error_record(probe, e))
        return records

    async def run_phase(self, phase: Phase, persist: bool = True) -> RunOutcome:
        log.info("=== %s (%d probes) against %s ===", phase.label, len(phase.probes), self.base_url)
        start = time.perf_counter()
        records = await self.run_probes(self.build_probes(phase))
        result = PhaseResult.from_records(
            phase.label, records, (time.perf_counter() - start) * 1000,
        )
        outcome = RunOutcome(
            result=result,
            errors=[r.name for r in records if r.severity == Severity.ERROR],
        )

        if persist:
            outcome.path = self.store.save(result)
        if self.alerts is not None and result.critical:
            outcome.alerts_sent = await self.alerts.send_many(result.critical)

        log.info(
            "%s finished: %d/%d passed in %.0fms",
            phase.label, result.passed, result.total_tests, result.duration_ms,
        )
        return outcome

    async def run_phases(self, phases: list[Phase], persist: bool = True) -> list[RunOutcome]:
        return [await self.run_phase(p, persist=persist) for p in phases]


def _accepts(cls, param: str) -> bool:
    for klass in cls.__mro__:
        init = klass.__dict__.get("__init__")
        if init is not None and param in inspect.signature(init).parameters:
            return True
    return False
