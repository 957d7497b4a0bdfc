import json

from rich.console import Console

from dexsentry.aggregator import Aggregator
from dexsentry.models.records import AggregatedReport, Finding, Severity
from dexsentry.reports.generator import generate_report, render
from dexsentry.reports.html import render_html
from dexsentry.reports.markdown import render_markdown
from dexsentry.reports.remediation import FALLBACK, lookup, lookup_or_fallback

from conftest import write_result


def _report(tmp_path, tests):
    write_result(tmp_path, "2025-01-01T00-00-00-000Z", tests)
    return Aggregator(tmp_path).aggregate()


# ── remediation lookup ───────────────────────────────────────────


def test_lookup_exact_and_prefixed():
    assert lookup("Rate Limiting")["impact"]
    assert lookup("Critical Infrastructure: Rate Limiting") is lookup("Rate Limiting")
    assert lookup("Rate Limit Detection") is lookup("Rate Limiting")


def test_lookup_miss_falls_back():
    assert lookup("Something Else") is None
    assert lookup_or_fallback("Something Else") is FALLBACK


# ── markdown ─────────────────────────────────────────────────────


def test_markdown_all_clear(tmp_path):
    text = render_markdown(_report(tmp_path, [{"name": "Rate Limiting", "passed": True}]))

    assert "## ✅ All Clear" in text
    assert "All security tests passing." in text
    assert "🚨 Critical Issues" not in text
    assert "- 🟢 **Rate Limiting**" in text


def test_markdown_critical_section_uses_remediation(tmp_path):
    report = _report(tmp_path, [
        {"name": "Rate Limiting", "severity": "CRITICAL",
         "details": {"requestsSent": 50, "successful": 50}},
        {"name": "Precision/Rounding", "severity": "MEDIUM"},
    ])

    text = render_markdown(report)

    assert "## 🚨 Critical Issues" in text
    assert "### 🔴 Rate Limiting" in text
    assert "50 requests sent, 50 succeeded - No rate limiting detected" in text
    assert lookup("Rate Limiting")["description"] in text
    assert "### MEDIUM:" in text
    assert "All Clear" not in text


def test_markdown_unknown_critical_gets_generic_steps(tmp_path):
    text = render_markdown(_report(tmp_path, [{"name": "Mystery", "severity": "CRITICAL"}]))
    assert "1. Review the test results" in text


def test_markdown_escapes_table_pipes(tmp_path):
    text = render_markdown(_report(tmp_path, [{"name": "x", "severity": "LOW", "details": "a|b"}]))
    assert "a\\|b" in text


# ── html ─────────────────────────────────────────────────────────


def test_html_escapes_record_text(tmp_path):
    report = _report(tmp_path, [
        {"name": "<script>alert(1)</script>", "severity": "HIGH", "details": "<img src=x>"},
    ])

    page = render_html(report)

    assert "<script>alert(1)</script>" not in page
    assert "&lt;script&gt;" in page
    assert "<img src=x>" not in page


def test_html_critical_alert_bar_and_refresh(tmp_path):
    report = _report(tmp_path, [{"name": "Rate Limiting", "severity": "CRITICAL"}])

    page = render_html(report, refresh=30)

    assert 'class="alert"' in page
    assert 'http-equiv="refresh" content="30"' in page


def test_html_no_refresh_and_all_clear():
    page = render_html(AggregatedReport(), refresh=0)

    assert "http-equiv" not in page
    assert "All security tests passing" in page


def test_html_medium_only_is_not_fully_clear():
    report = AggregatedReport(findings=[Finding(name="Quote Consistency", severity=Severity.MEDIUM)])
    assert "No critical or high severity issues" in render_html(report, refresh=0)


# ── generator ────────────────────────────────────────────────────


def test_generate_report_to_explicit_path(tmp_path):
    out = tmp_path / "nested" / "report.html"

    path = generate_report(AggregatedReport(), "html", output_path=out)

    assert path == out
    assert out.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")


def test_generate_report_to_reports_dir(tmp_path):
    path = generate_report(AggregatedReport(), "json", reports_dir=tmp_path)

    assert path.parent == tmp_path
    assert path.name.startswith("report-") and path.suffix == ".json"
    assert json.loads(path.read_text(encoding="utf-8"))["security_score"] == 10


def test_console_format_prints_and_saves_nothing(tmp_path):
    console = Console(record=True, width=120)
    report = _report(tmp_path / "results", [{"name": "Deadline Bypass", "severity": "HIGH"}])

    path = generate_report(report, "console", reports_dir=tmp_path / "reports", console=console)

    assert path is None
    assert "Deadline Bypass" in console.export_text()
    assert not (tmp_path / "reports").exists()


def test_render_rejects_unknown_format():
    try:
        render(AggregatedReport(), "pdf")
    except ValueError as e:
        assert "pdf" in str(e)
    else:
        raise AssertionError("expected ValueError")
