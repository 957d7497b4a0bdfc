import json
from pathlib import Path

import httpx
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


BASE_URL = "https://dex.test"


def mock_client(handler) -> httpx.AsyncClient:
    """AsyncClient whose every request goes to *handler*."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)


def refused(request: httpx.Request):
    raise httpx.ConnectError("[Errno 111] Connection refused", request=request)


def status(code: int, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(code, json=body if body is not None else {})
    return handler


def write_result(results_dir: Path, stamp: str, tests: list, phase: str = "Phase 1 - Critical Infrastructure") -> Path:
    """Drop a raw PhaseResult file named so it sorts by *stamp*."""
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / f"security-{stamp}.json"
    path.write_text(json.dumps({"phase": phase, "timestamp": stamp, "tests": tests}), encoding="utf-8")
    return path
