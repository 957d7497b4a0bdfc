"""
Markdown report.  Pure: AggregatedReport in, text out.
"""

from __future__ import annotations

from datetime import datetime

from dexsentry.models.records import AggregatedReport, Finding, Severity
from dexsentry.reports.remediation import lookup

_INDICATORS = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🔴",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🟡",
    Severity.ERROR: "🟡",
    Severity.PASS: "🟢",
}

_SEVERITY_NOTES = {
    Severity.CRITICAL: "Immediate action required",
    Severity.HIGH: "Fix within days",
    Severity.MEDIUM: "Fix in the next release",
    Severity.LOW: "Improvement suggested",
    Severity.ERROR: "No verdict; re-run the probe",
}


def _date(report: AggregatedReport) -> str:
    try:
        return datetime.fromisoformat(report.generated_at).strftime("%Y-%m-%d %H:%M UTC")
    except ValueError:
        return report.generated_at


def _critical_block(f: Finding) -> list[str]:
    lines = [f"### 🔴 {f.display_name}", ""]
    entry = lookup(f.name, f.category)
    lines.append(f"**Finding:** {f.details or 'Issue detected'}")
    if f.phase:
        lines.append(f"**Phase:** {f.phase}")
    lines.append("")

    if entry is None:
        lines += [
            "**Recommended steps:**",
            "1. Review the test results",
            "2. Investigate the issue",
            "3. Implement appropriate fixes",
        ]
        if f.recommendation:
            lines += ["", f"**Recommendation:** {f.recommendation}"]
        return lines + [""]

    lines += [
        f"**Description:** {entry['description']}",
        f"**Impact:** {entry['impact']}",
        "",
        "**How the test was run:**",
        f"- Method: {entry['howTestWasRun']['method']}",
        f"- {entry['howTestWasRun']['details']}",
        f"- Expected: {entry['howTestWasRun']['expectedBehavior']}",
        f"- Actual: {entry['howTestWasRun']['actualBehavior']}",
        "",
        "**Immediate actions:**",
    ]
    lines += [f"{i}. {step}" for i, step in enumerate(entry["remediation"]["immediate"], 1)]
    lines += [
        "",
        "**Implementation:**",
        "```",
        entry["remediation"]["implementation"],
        "```",
        "",
        "**Verify the fix:**",
    ]
    lines += [f"- {t}" for t in entry["remediation"]["testing"]]
    return lines + [""]


def render_markdown(report: AggregatedReport) -> str:
    sev = report.by_severity
    lines = [
        "# DEX Security Assessment Report",
        "",
        f"Generated: {_date(report)}",
        "",
        "## Executive Summary",
        "",
        f"- **Tests run:** {report.total_tests}",
        f"- **Passed:** {report.passed}/{report.total_tests} ({report.pass_rate}%)",
        f"- **Security score:** {report.security_score}/10",
        f"- **Critical:** {sev.get('CRITICAL', 0)}",
        f"- **High:** {sev.get('HIGH', 0)}",
        f"- **Medium:** {sev.get('MEDIUM', 0)}",
        f"- **Low:** {sev.get('LOW', 0)}",
    ]
    if sev.get("ERROR"):
        lines.append(f"- **Inconclusive:** {sev['ERROR']}")
    lines.append("")

    # Results table
    lines += ["## Results", "", "| | Test | Severity | Details |", "|---|---|---|---|"]
    for f in report.findings + report.passed_tests:
        details = (f.details or "").replace("|", "\\|").replace("\n", " ")
        lines.append(
            f"| {_INDICATORS.get(f.severity, '🟡')} | {f.display_name} | {f.severity.value} | {details[:100]} |"
        )
    lines += [
        "",
        "Legend: 🟢 passed · 🟡 medium/low or inconclusive · 🔴 critical/high",
        "",
    ]

    # Critical findings, full detail
    critical = report.findings_with(Severity.CRITICAL)
    if critical:
        lines += ["## 🚨 Critical Issues", ""]
        for f in critical:
            lines += _critical_block(f)

    # Everything else, one line each
    others = [f for f in report.findings if f.severity != Severity.CRITICAL]
    if others:
        lines += ["## Other Issues Found", ""]
        for level in (Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.ERROR):
            group = [f for f in others if f.severity == level]
            if not group:
                continue
            lines += [f"### {level.value}: {_SEVERITY_NOTES[level]}", ""]
            for f in group:
                line = f"- **{f.display_name}**: {f.details or 'Issue detected'}"
                if f.recommendation:
                    line += f" (_{f.recommendation}_)"
                lines.append(line)
            lines.append("")

    if report.all_clear:
        lines += [
            "## ✅ All Clear",
            "",
            "No critical or high severity issues were found.",
        ]
        if not report.findings:
            lines.append("All security tests passing.")
        lines.append("")

    if report.passed_tests:
        lines += ["## Security Controls Working Correctly", ""]
        for f in report.passed_tests:
            line = f"- 🟢 **{f.display_name}**"
            if f.details:
                line += f": {f.details}"
            lines.append(line)
        lines.append("")

    lines += ["## Priority Action Items", ""]
    actions = report.findings_with(Severity.CRITICAL, Severity.HIGH)
    if actions:
        for i, f in enumerate(actions, 1):
            entry = lookup(f.name, f.category)
            step = entry["remediation"]["immediate"][0] if entry else (f.recommendation or "Investigate")
            lines.append(f"{i}. **[{f.severity.value}] {f.display_name}**: {step}")
    else:
        lines.append("No urgent actions. Keep the scheduled monitoring running.")
    lines.append("")

    return "\n".join(lines)
