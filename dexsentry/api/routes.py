from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse

from dexsentry.aggregator import Aggregator
from dexsentry.reports.html import render_html
from dexsentry.reports.remediation import REMEDIATION_GUIDE, lookup_or_fallback
from dexsentry.storage.results import ResultStore

router = APIRouter()


def _store(request: Request) -> ResultStore:
    return request.app.state.store


def _aggregate(request: Request):
    # rebuilt from disk on every request
    return Aggregator(store=_store(request), policy=request.app.state.dedup_policy).aggregate()


@router.get("/", response_class=HTMLResponse)
def dashboard(request: Request):
    return HTMLResponse(render_html(_aggregate(request), refresh=request.app.state.refresh))


# ── API ───────────────────────────────────────────────────────────


@router.get("/api/status")
def status(request: Request):
    latest = _store(request).latest(1)
    return {
        "latest": latest[0] if latest else None,
        "totalIssues": len(REMEDIATION_GUIDE),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/api/issue/{name:path}")
def issue(name: str):
    return lookup_or_fallback(name)


@router.get("/api/report")
def report(request: Request):
    return JSONResponse(_aggregate(request).model_dump(mode="json"))


@router.get("/api/health")
def health(request: Request):
    return {
        "status": "ok",
        "results_dir": str(_store(request).results_dir),
        "result_files": len(_store(request).files()),
    }
