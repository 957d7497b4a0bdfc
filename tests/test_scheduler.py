import asyncio
import threading

import pytest

from dexsentry.runner import PhaseRunner
from dexsentry.scheduler import Job, Scheduler
from dexsentry.storage.results import ResultStore

from conftest import write_result

pytestmark = pytest.mark.anyio


def _scheduler(tmp_path):
    return Scheduler(PhaseRunner(store=ResultStore(tmp_path / "results")), reports_dir=tmp_path / "reports")


async def test_failing_job_does_not_stop_the_others(tmp_path):
    scheduler = _scheduler(tmp_path)

    async def boom():
        raise RuntimeError("target down")

    async def ok():
        return None

    scheduler.jobs = [Job("boom", 0.01, boom), Job("ok", 0.01, ok)]
    scheduler.start(run_now=True)
    await asyncio.sleep(0.1)
    await scheduler.stop()

    boom_job, ok_job = scheduler.jobs
    assert boom_job.failures >= 2
    assert boom_job.runs == 0
    assert ok_job.runs >= 2


async def test_run_job_once_reports_failure(tmp_path):
    scheduler = _scheduler(tmp_path)

    async def boom():
        raise ValueError("bad")

    job = Job("boom", 60, boom)
    assert await scheduler.run_job_once(job) is False
    assert job.failures == 1


async def test_stop_cancels_sleeping_jobs(tmp_path):
    scheduler = _scheduler(tmp_path)
    calls = []

    async def action():
        calls.append(1)

    scheduler.jobs = [Job("slow", 3600, action)]
    tasks = scheduler.start(run_now=False)
    await asyncio.sleep(0)
    await scheduler.stop()

    assert calls == []
    assert all(t.done() for t in tasks)


async def test_daily_report_writes_markdown(tmp_path):
    write_result(tmp_path / "results", "2025-01-01T00-00-00-000Z", [{"name": "Rate Limiting", "passed": True}])
    scheduler = _scheduler(tmp_path)

    path = await scheduler.daily_report()

    assert path.parent == tmp_path / "reports"
    assert path.suffix == ".md"


async def test_daily_report_runs_off_the_event_loop(tmp_path, monkeypatch):
    write_result(tmp_path / "results", "2025-01-01T00-00-00-000Z", [{"name": "Rate Limiting", "passed": True}])
    scheduler = _scheduler(tmp_path)
    loop_thread = threading.get_ident()
    seen = []
    aggregate = scheduler.aggregator.aggregate

    def tracking_aggregate():
        seen.append(threading.get_ident())
        return aggregate()

    monkeypatch.setattr(scheduler.aggregator, "aggregate", tracking_aggregate)

    await scheduler.daily_report()

    assert seen and seen[0] != loop_thread


def test_setup_registers_four_jobs(tmp_path):
    names = [j.name for j in _scheduler(tmp_path).setup()]
    assert names == ["critical tests", "phase 1", "phase 2", "daily report"]
