"""
Aggregator — fold every PhaseResult on disk into one AggregatedReport.

Nothing is cached: each call re-reads the results directory.  Older
result files (and files written by other tooling) use several shapes
for the same record, so every raw record goes through
``normalize_record`` before anything else looks at it.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from dexsentry.config import DEDUP_POLICY
from dexsentry.models.records import (
    AggregatedReport,
    DedupPolicy,
    Finding,
    PhaseStatus,
    Severity,
    severity_rank,
)
from dexsentry.storage.results import ResultStore

log = logging.getLogger(__name__)

_DETAIL_KEYS = ("message", "error", "exposedInfo", "note")
_CASE_KEYS = ("result", "message", "case", "finding")
_PHASE_KEY = re.compile(r"Phase \d+[A-Z]?", re.I)
_PASS_STATUSES = {"PASS", "PROTECTED"}


# ── Details coercion ──────────────────────────────────────────────

def _format_value(value) -> str:
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _format_pair(key: str, value) -> str:
    if key == "requestsSent":
        return f"{value} requests sent"
    if key == "successful":
        return f"{value} succeeded"
    if key == "testCases":
        return f"{value} tests"
    if key == "issuesFound":
        return f"{value} issues found"
    return f"{key}: {_format_value(value)}"


def _coerce_list(details: list) -> str:
    if not details:
        return "Details available"

    if isinstance(details[0], dict):
        seen: list[str] = []
        for item in details:
            text = None
            if isinstance(item, str):
                text = item
            elif isinstance(item, dict):
                for key in _CASE_KEYS:
                    if item.get(key):
                        text = str(item[key])
                        break
            if text and text not in seen:
                seen.append(text)
        if not seen:
            return "Multiple issues detected"
        joined = ", ".join(seen)
        if "VULNERABILITY" in joined:
            return "Security vulnerability detected"
        return joined

    if all(isinstance(item, str) for item in details):
        joined = ", ".join(details)
        if "VULNERABILITY" in joined:
            return "Vulnerability detected in pool creation"
        return joined

    return "Details available"


def _coerce_dict(details: dict) -> str:
    for key in _DETAIL_KEYS:
        if details.get(key):
            return str(details[key])
    if "requestsSent" in details and "successful" in details:
        return (
            f"{details['requestsSent']} requests sent, {details['successful']} succeeded"
            " - No rate limiting detected"
        )
    if "testCases" in details and "issuesFound" in details:
        return f"{details['issuesFound']} precision issues found in {details['testCases']} test cases"
    if not details:
        return "Issue detected"
    return ", ".join(_format_pair(k, v) for k, v in list(details.items())[:3])


def coerce_details(details) -> str:
    """Turn any ``details`` shape into one display string.

    Strings come back unchanged, so coercing twice is the same as once.
    """
    if isinstance(details, str):
        return details
    if details is None:
        return ""
    if isinstance(details, list):
        return _coerce_list(details)
    if isinstance(details, dict):
        return _coerce_dict(details)
    return "Issue detected"


# ── Record normalization ─────────────────────────────────────────

def normalize_name(name: str, category: str = "") -> tuple[str, str]:
    """Strip a display-added ``"<category>: "`` prefix.

    Returns ``(name, category)``; when no category was given and the
    name carries one, the prefix becomes the category.
    """
    if category:
        prefix = f"{category}: "
        if name.startswith(prefix):
            name = name[len(prefix):]
        return name, category
    if ": " in name:
        left, right = name.split(": ", 1)
        return right, left
    return name, category


def _severity(raw, passed: bool) -> Severity:
    if passed:
        return Severity.PASS
    value = str(raw or "").strip().upper()
    if value == "INFO":
        return Severity.LOW
    try:
        sev = Severity(value)
    except ValueError:
        return Severity.MEDIUM
    return Severity.MEDIUM if sev == Severity.PASS else sev


def normalize_record(raw: dict, phase: str = "", source_file: str = "") -> Finding:
    name = raw.get("name") or raw.get("test") or raw.get("testName") or "Unknown Test"
    status = str(raw.get("status") or "").upper()
    passed = raw.get("passed") is True or status in _PASS_STATUSES

    details = raw.get("details")
    for key in ("findings", "message", "error"):
        if details:
            break
        details = raw.get(key)

    name, category = normalize_name(str(name), str(raw.get("category") or ""))
    metrics = raw.get("metrics")
    return Finding(
        name=name,
        category=category,
        phase=phase,
        passed=passed,
        severity=_severity(raw.get("severity"), passed),
        details=coerce_details(details),
        recommendation=raw.get("recommendation") or None,
        timestamp=str(raw.get("timestamp") or ""),
        metrics=metrics if isinstance(metrics, dict) else None,
        source_file=source_file,
    )


def phase_key(phase: str) -> str:
    match = _PHASE_KEY.search(phase)
    if match:
        return match.group(0).title()
    return phase.split(" - ")[0] or phase


def _records(raw: dict) -> Optional[list]:
    tests = raw.get("tests")
    if tests is None:
        tests = raw.get("results")
    return tests if isinstance(tests, list) else None


# ── Aggregation ──────────────────────────────────────────────────

def security_score(by_severity: dict) -> int:
    if by_severity.get("CRITICAL", 0):
        return 0
    return max(0, 10 - 2 * by_severity.get("HIGH", 0) - by_severity.get("MEDIUM", 0))


def _better(candidate: Finding, current: Finding) -> bool:
    """Strictly worse severity wins; ties keep the record seen first."""
    if candidate.passed:
        return False
    if current.passed:
        return True
    return severity_rank(candidate.severity) < severity_rank(current.severity)


class Aggregator:
    def __init__(
        self,
        results_dir: Path | str | None = None,
        policy: DedupPolicy | str = DEDUP_POLICY,
        store: Optional[ResultStore] = None,
    ) -> None:
        self.store = store or (ResultStore(results_dir) if results_dir else ResultStore())
        self.policy = DedupPolicy(policy)

    def collect(self) -> tuple[list[tuple[str, list[Finding]]], int, int]:
        """``[(phase label, findings)]`` newest file first, plus scan counts."""
        files = self.store.files()
        runs = []
        skipped = 0
        for path in files:
            raw = self.store.read(path)
            tests = _records(raw) if raw is not None else None
            if tests is None:
                if raw is not None:
                    log.warning("skipping %s: no test list", path.name)
                skipped += 1
                continue

            phase = str(raw.get("phase") or "")
            findings = []
            for item in tests:
                if not isinstance(item, dict):
                    log.warning("skipping non-object record in %s", path.name)
                    continue
                try:
                    findings.append(normalize_record(item, phase, path.name))
                except ValidationError as e:
                    log.warning("skipping bad record in %s: %s", path.name, e)
            runs.append((phase, findings))
        return runs, len(files), skipped

    def dedupe(self, runs: list[tuple[str, list[Finding]]]) -> list[Finding]:
        """One verdict per normalized name, in first-seen order."""
        chosen: dict[str, Finding] = {}
        for _phase, findings in runs:
            for f in findings:
                current = chosen.get(f.name)
                if current is None:
                    chosen[f.name] = f
                elif self.policy == DedupPolicy.HIGHEST_SEVERITY and _better(f, current):
                    chosen[f.name] = f
                # LATEST_RUN: newest file is iterated first, so first seen wins
        return list(chosen.values())

    def phase_status(self, runs: list[tuple[str, list[Finding]]]) -> list[PhaseStatus]:
        latest: dict[str, PhaseStatus] = {}
        for phase, findings in runs:
            key = phase_key(phase)
            if not key or key in latest:
                continue
            by_sev: dict[str, int] = {}
            for f in findings:
                if not f.passed:
                    by_sev[f.severity.value] = by_sev.get(f.severity.value, 0) + 1
            latest[key] = PhaseStatus(
                key=key,
                name=phase,
                passed=sum(1 for f in findings if f.passed),
                total=len(findings),
                by_severity=by_sev,
            )
        return sorted(latest.values(), key=lambda s: s.key)

    def aggregate(self) -> AggregatedReport:
        runs, scanned, skipped = self.collect()
        verdicts = self.dedupe(runs)

        findings = [f for f in verdicts if not f.passed]
        findings.sort(key=lambda f: severity_rank(f.severity))
        passed_tests = [f for f in verdicts if f.passed]

        by_severity: dict[str, int] = {}
        for f in findings:
            by_severity[f.severity.value] = by_severity.get(f.severity.value, 0) + 1

        total = len(verdicts)
        report = AggregatedReport(
            policy=self.policy,
            total_tests=total,
            passed=len(passed_tests),
            failed=len(findings),
            by_severity=by_severity,
            findings=findings,
            passed_tests=passed_tests,
            phases=self.phase_status(runs),
            pass_rate=round(len(passed_tests) / total * 100) if total else 0,
            security_score=security_score(by_severity),
            files_scanned=scanned,
            files_skipped=skipped,
        )
        log.debug(
            "aggregated %d files (%d skipped): %d tests, %d findings",
            scanned, skipped, total, len(findings),
        )
        return report
