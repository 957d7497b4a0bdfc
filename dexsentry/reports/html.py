"""
Self-contained HTML dashboard.  Pure: AggregatedReport in, text out.

Every piece of text that came from a result file goes through ``_esc``.
"""

from __future__ import annotations

import html as html_mod
import json

from dexsentry.config import DASHBOARD_REFRESH
from dexsentry.models.records import AggregatedReport, Finding, Severity
from dexsentry.reports.remediation import lookup

SEVERITY_COLORS = {
    "CRITICAL": "#f85149",
    "HIGH": "#db6d28",
    "MEDIUM": "#d29922",
    "LOW": "#58a6ff",
    "ERROR": "#8b949e",
    "PASS": "#3fb950",
}


def _esc(text) -> str:
    """HTML-escape a string."""
    return html_mod.escape(str(text)) if text else ""


def _list(items) -> str:
    return "".join(f"<li>{_esc(i)}</li>" for i in items)


def _issue_card(f: Finding, index: int) -> str:
    color = SEVERITY_COLORS.get(f.severity.value, "#8b949e")
    entry = lookup(f.name, f.category)
    body = [f'<p class="details">{_esc(f.details or "Issue detected")}</p>']

    if entry is not None:
        how = entry["howTestWasRun"]
        fix = entry["remediation"]
        body.append(f"<h4>Impact</h4><p>{_esc(entry['impact'])}</p>")
        body.append(
            "<h4>How the test was run</h4>"
            f"<p><strong>{_esc(how['method'])}</strong>: {_esc(how['details'])}</p>"
            f"<pre><code>{_esc(how['code'])}</code></pre>"
            f"<p>Expected: {_esc(how['expectedBehavior'])}<br>Actual: {_esc(how['actualBehavior'])}</p>"
        )
        body.append(f"<h4>Fix now</h4><ol>{_list(fix['immediate'])}</ol>")
        body.append(f"<h4>Implementation</h4><pre><code>{_esc(fix['implementation'])}</code></pre>")
        body.append(f"<h4>Verify</h4><ul>{_list(fix['testing'])}</ul>")
    elif f.recommendation:
        body.append(f"<h4>Recommendation</h4><p>{_esc(f.recommendation)}</p>")

    if f.metrics:
        body.append(
            "<h4>Metrics</h4>"
            f"<pre><code>{_esc(json.dumps(f.metrics, indent=2, default=str))}</code></pre>"
        )

    return f"""
    <details class="issue" id="issue-{index}" style="border-left:4px solid {color}">
        <summary>
            <span class="badge" style="background:{color}">{_esc(f.severity.value)}</span>
            <span class="issue-name">{_esc(f.display_name)}</span>
            <span class="phase">{_esc(f.phase)}</span>
        </summary>
        <div class="issue-body">{''.join(body)}</div>
    </details>"""


def _phase_rows(report: AggregatedReport) -> str:
    rows = ""
    for p in report.phases:
        ok = p.failing == 0
        color = "#3fb950" if ok else "#f85149"
        worst = ", ".join(f"{k}: {v}" for k, v in sorted(p.by_severity.items()))
        rows += f"""<tr>
            <td>{_esc(p.key)}</td>
            <td>{_esc(p.name)}</td>
            <td style="color:{color};font-weight:bold">{p.passed}/{p.total}</td>
            <td>{_esc(worst) or '-'}</td>
        </tr>\n"""
    return rows


def render_html(report: AggregatedReport, refresh: int = DASHBOARD_REFRESH) -> str:
    sev = report.by_severity
    critical = report.findings_with(Severity.CRITICAL)

    alert_bar = ""
    if critical:
        first = critical[0]
        alert_bar = (
            f'<div class="alert">CRITICAL: {_esc(first.display_name)} '
            f"&mdash; {_esc(first.details or 'Issue detected')}</div>"
        )

    if report.findings:
        issues = "".join(_issue_card(f, i) for i, f in enumerate(report.findings))
    else:
        issues = ""
    if report.all_clear:
        issues = (
            '<p class="all-clear">All security tests passing</p>'
            if not report.findings else
            '<p class="all-clear">No critical or high severity issues</p>'
        ) + issues

    passed_items = "".join(
        f"<li>{_esc(f.display_name)}</li>" for f in report.passed_tests
    ) or "<li>None yet</li>"

    score_color = "#3fb950" if report.security_score >= 8 else (
        "#d29922" if report.security_score >= 5 else "#f85149"
    )
    refresh_tag = f'<meta http-equiv="refresh" content="{int(refresh)}">' if refresh else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{refresh_tag}
<title>DEX Security Dashboard</title>
<style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
           background: #0d1117; color: #c9d1d9; padding: 24px; line-height: 1.5; }}
    h1 {{ color: #58a6ff; margin-bottom: 4px; }}
    h2 {{ color: #c9d1d9; margin: 24px 0 12px; border-bottom: 1px solid #30363d; padding-bottom: 8px; }}
    h4 {{ color: #8b949e; margin: 12px 0 4px; font-size: 13px; text-transform: uppercase; }}
    .subtitle {{ color: #8b949e; margin-bottom: 24px; }}
    .alert {{ background: #3d1214; border: 1px solid #f85149; color: #f85149; padding: 12px 16px;
              border-radius: 8px; margin-bottom: 24px; font-weight: bold; }}
    .summary {{ display: flex; gap: 24px; margin-bottom: 24px; flex-wrap: wrap; }}
    .summary-card {{ background: #161b22; border: 1px solid #30363d; border-radius: 8px;
                     padding: 16px 24px; min-width: 140px; }}
    .summary-card .label {{ color: #8b949e; font-size: 12px; text-transform: uppercase; }}
    .summary-card .value {{ font-size: 28px; font-weight: bold; margin-top: 4px; }}
    .issue {{ background: #161b22; border: 1px solid #30363d; border-radius: 8px; margin-bottom: 12px; }}
    .issue summary {{ padding: 12px 16px; cursor: pointer; display: flex; gap: 12px; align-items: center; }}
    .issue-body {{ padding: 0 16px 16px; }}
    .badge {{ color: #0d1117; font-size: 11px; font-weight: bold; padding: 2px 8px; border-radius: 4px; }}
    .phase {{ color: #8b949e; font-size: 12px; margin-left: auto; }}
    .all-clear {{ color: #3fb950; font-weight: bold; margin-bottom: 12px; }}
    table {{ width: 100%; border-collapse: collapse; margin-bottom: 24px; }}
    th, td {{ text-align: left; padding: 8px 12px; border-bottom: 1px solid #21262d; }}
    th {{ background: #161b22; color: #8b949e; font-size: 12px; text-transform: uppercase; }}
    pre {{ background: #1c2128; padding: 8px 12px; border-radius: 4px; overflow-x: auto; }}
    code {{ font-size: 13px; }}
    ul, ol {{ margin-left: 20px; }}
</style>
</head>
<body>
    <h1>DEX Security Dashboard</h1>
    <p class="subtitle">Generated {_esc(report.generated_at)} &middot; {report.files_scanned} result files &middot; dedup: {_esc(report.policy.value)}</p>

    {alert_bar}

    <div class="summary">
        <div class="summary-card">
            <div class="label">Security Score</div>
            <div class="value" style="color:{score_color}">{report.security_score}/10</div>
        </div>
        <div class="summary-card">
            <div class="label">Critical</div>
            <div class="value" style="color:{SEVERITY_COLORS['CRITICAL']}">{sev.get('CRITICAL', 0)}</div>
        </div>
        <div class="summary-card">
            <div class="label">High</div>
            <div class="value" style="color:{SEVERITY_COLORS['HIGH']}">{sev.get('HIGH', 0)}</div>
        </div>
        <div class="summary-card">
            <div class="label">Pass Rate</div>
            <div class="value">{report.pass_rate}%</div>
        </div>
    </div>

    <h2>Issues</h2>
    {issues}

    <h2>Phase Status</h2>
    <table>
        <thead><tr><th>Phase</th><th>Latest Run</th><th>Passed</th><th>Failing</th></tr></thead>
        <tbody>{_phase_rows(report)}</tbody>
    </table>

    <h2>Passing Controls</h2>
    <ul>{passed_items}</ul>
</body>
</html>"""
