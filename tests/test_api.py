import inspect

import pytest
from fastapi.testclient import TestClient

from dexsentry.main import create_app
from dexsentry.reports.remediation import FALLBACK, REMEDIATION_GUIDE

from conftest import write_result


@pytest.fixture
def client(tmp_path):
    write_result(tmp_path, "2025-01-01T00-00-00-000Z", [
        {"name": "Rate Limiting", "severity": "CRITICAL"},
        {"name": "Liquidity Drain", "passed": True},
    ])
    with TestClient(create_app(tmp_path, refresh=0)) as c:
        yield c


def test_status(client):
    body = client.get("/api/status").json()

    assert body["totalIssues"] == len(REMEDIATION_GUIDE)
    assert body["latest"]["phase"] == "Phase 1 - Critical Infrastructure"
    assert body["timestamp"]


def test_status_without_results(tmp_path):
    with TestClient(create_app(tmp_path / "empty", refresh=0)) as c:
        assert c.get("/api/status").json()["latest"] is None


def test_issue_exact(client):
    body = client.get("/api/issue/Rate Limiting").json()
    assert body == REMEDIATION_GUIDE["Rate Limiting"]


def test_issue_with_category_prefix(client):
    body = client.get("/api/issue/Critical Infrastructure: Rate Limiting").json()
    assert body == REMEDIATION_GUIDE["Rate Limiting"]


def test_issue_name_with_slash(client):
    body = client.get("/api/issue/Precision/Rounding").json()
    assert body == REMEDIATION_GUIDE["Precision/Rounding"]


def test_issue_unknown_returns_generic_entry(client):
    resp = client.get("/api/issue/Nope")
    assert resp.status_code == 200
    assert resp.json() == FALLBACK


def test_dashboard_page(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "Rate Limiting" in resp.text
    assert "http-equiv" not in resp.text


def test_report_json(client):
    body = client.get("/api/report").json()

    assert body["total_tests"] == 2
    assert body["by_severity"] == {"CRITICAL": 1}
    assert body["security_score"] == 0
    assert [f["name"] for f in body["findings"]] == ["Rate Limiting"]


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["result_files"] == 1


def test_routes_do_not_block_the_event_loop():
    # plain def routes run in the threadpool
    from dexsentry.api import routes

    for handler in (routes.dashboard, routes.status, routes.issue, routes.report, routes.health):
        assert not inspect.iscoroutinefunction(handler)


def test_issue_for_sandwich_attack(client):
    body = client.get("/api/issue/Sandwich Attack").json()
    assert body == REMEDIATION_GUIDE["Sandwich Attack"]
