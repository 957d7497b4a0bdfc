"""
Interval scheduler for continuous monitoring.

Each job is its own asyncio task sleeping between runs.  A failing job
is logged and retried on its next tick; it never takes the other jobs
down with it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from dexsentry.aggregator import Aggregator
from dexsentry.config import (
    REPORTS_DIR,
    SCHEDULE_CRITICAL_INTERVAL,
    SCHEDULE_PHASE1_INTERVAL,
    SCHEDULE_PHASE2_INTERVAL,
    SCHEDULE_REPORT_INTERVAL,
)
from dexsentry.models.records import Severity
from dexsentry.phases import get_phase
from dexsentry.reports.generator import generate_report
from dexsentry.runner import PhaseRunner

log = logging.getLogger(__name__)


@dataclass
class Job:
    name: str
    interval: float
    action: Callable[[], Awaitable[object]]
    runs: int = 0
    failures: int = 0


class Scheduler:
    def __init__(
        self,
        runner: PhaseRunner,
        aggregator: Optional[Aggregator] = None,
        reports_dir=REPORTS_DIR,
    ) -> None:
        self.runner = runner
        self.aggregator = aggregator or Aggregator(store=runner.store)
        self.reports_dir = reports_dir
        self.jobs: list[Job] = []
        self._tasks: list[asyncio.Task] = []

    # ── Job actions ───────────────────────────────────────────────────

    async def run_critical(self):
        outcome = await self.runner.run_phase(get_phase("critical"))
        for record in outcome.result.tests:
            if record.severity == Severity.CRITICAL:
                log.critical("CRITICAL: %s still failing", record.name)
        return outcome

    async def run_phase1(self):
        return await self.runner.run_phase(get_phase("1"))

    async def run_phase2(self):
        return await self.runner.run_phase(get_phase("2"))

    async def daily_report(self):
        # file reads and report rendering stay off the event loop
        report = await asyncio.to_thread(self.aggregator.aggregate)
        return await asyncio.to_thread(
            generate_report, report, "markdown", reports_dir=self.reports_dir,
        )

    def setup(self) -> list[Job]:
        self.jobs = [
            Job("critical tests", SCHEDULE_CRITICAL_INTERVAL, self.run_critical),
            Job("phase 1", SCHEDULE_PHASE1_INTERVAL, self.run_phase1),
            Job("phase 2", SCHEDULE_PHASE2_INTERVAL, self.run_phase2),
            Job("daily report", SCHEDULE_REPORT_INTERVAL, self.daily_report),
        ]
        return self.jobs

    # ── Loop ──────────────────────────────────────────────────────────

    async def run_job_once(self, job: Job) -> bool:
        try:
            await job.action()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.failures += 1
            log.error("job %s failed: %s: %s", job.name, type(e).__name__, e)
            return False
        job.runs += 1
        return True

    async def _loop(self, job: Job, run_now: bool) -> None:
        if not run_now:
            await asyncio.sleep(job.interval)
        while True:
            try:
                log.info("running scheduled job: %s", job.name)
                await self.run_job_once(job)
                await asyncio.sleep(job.interval)
            except asyncio.CancelledError:
                break

    def start(self, run_now: bool = False) -> list[asyncio.Task]:
        if not self.jobs:
            self.setup()
        self._tasks = [asyncio.create_task(self._loop(j, run_now)) for j in self.jobs]
        for j in self.jobs:
            log.info("scheduled %s every %ss", j.name, j.interval)
        return self._tasks

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        for t in self._tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._tasks = []
        log.info("security monitoring stopped")

    async def run_forever(self, run_now: bool = False) -> None:
        tasks = self.start(run_now)
        try:
            await asyncio.gather(*tasks)
        finally:
            await self.stop()
