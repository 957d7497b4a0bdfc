from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, model_validator


def utc_now() -> str:
    # fixed width so stored timestamps sort lexically
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class Severity(str, Enum):
    PASS = "PASS"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"


# Lower rank = worse.  PASS is never ranked as a finding.
SEVERITY_RANK = {
    Severity.CRITICAL: 1,
    Severity.HIGH: 2,
    Severity.MEDIUM: 3,
    Severity.LOW: 4,
    Severity.ERROR: 5,
}


def severity_rank(severity: Severity) -> int:
    return SEVERITY_RANK.get(severity, 99)


class TransportErrorPolicy(str, Enum):
    """How a probe judges a request that never got an HTTP response."""
    PASS = "PASS"
    FAIL = "FAIL"
    UNKNOWN = "UNKNOWN"


class DedupPolicy(str, Enum):
    """How the aggregator merges records that share a test name."""
    HIGHEST_SEVERITY = "highest_severity"
    LATEST_RUN = "latest_run"


Details = Union[str, dict, list, None]


class TestRecord(BaseModel):
    """Outcome of one probe (or one case of a multi-case probe)."""
    __test__ = False  # keep pytest from collecting this as a test class

    name: str
    category: str = ""
    passed: bool = False
    severity: Severity = Severity.MEDIUM
    details: Details = None
    recommendation: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now)
    metrics: Optional[dict] = None

    @model_validator(mode="after")
    def _passed_means_pass(self) -> "TestRecord":
        if self.passed:
            self.severity = Severity.PASS
        elif self.severity == Severity.PASS:
            self.severity = Severity.MEDIUM
        return self


class PhaseResult(BaseModel):
    """One persisted run of a phase.  Immutable once written."""
    phase: str
    timestamp: str = Field(default_factory=utc_now)
    duration_ms: float = 0.0
    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    tests: list[TestRecord] = []

    @classmethod
    def from_records(
        cls, phase: str, records: list[TestRecord], duration_ms: float = 0.0,
    ) -> "PhaseResult":
        passed = sum(1 for r in records if r.passed)
        return cls(
            phase=phase,
            duration_ms=round(duration_ms, 2),
            total_tests=len(records),
            passed=passed,
            failed=len(records) - passed,
            tests=records,
        )

    @property
    def critical(self) -> list[TestRecord]:
        return [t for t in self.tests if t.severity in (Severity.CRITICAL, Severity.HIGH)]


class Finding(BaseModel):
    """A normalized record as surfaced by the aggregator."""
    name: str
    category: str = ""
    phase: str = ""
    passed: bool = False
    severity: Severity = Severity.MEDIUM
    details: str = ""
    recommendation: Optional[str] = None
    timestamp: str = ""
    metrics: Optional[dict] = None
    source_file: str = ""

    @property
    def display_name(self) -> str:
        if self.category and self.category != self.name:
            return f"{self.category}: {self.name}"
        return self.name


class PhaseStatus(BaseModel):
    key: str
    name: str
    passed: int = 0
    total: int = 0
    by_severity: dict[str, int] = {}

    @property
    def failing(self) -> int:
        return self.total - self.passed


class AggregatedReport(BaseModel):
    """Transient view over every PhaseResult on disk.  Never persisted."""
    generated_at: str = Field(default_factory=utc_now)
    policy: DedupPolicy = DedupPolicy.HIGHEST_SEVERITY
    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    by_severity: dict[str, int] = {}
    findings: list[Finding] = []
    passed_tests: list[Finding] = []
    phases: list[PhaseStatus] = []
    pass_rate: int = 0
    security_score: int = 10
    files_scanned: int = 0
    files_skipped: int = 0

    def findings_with(self, *severities: Severity) -> list[Finding]:
        return [f for f in self.findings if f.severity in severities]

    @property
    def all_clear(self) -> bool:
        return not self.findings_with(Severity.CRITICAL, Severity.HIGH)


class ProbeResponse(BaseModel):
    """What a probe sees of one HTTP exchange."""
    status_code: int = 0
    body: str = ""
    data: Any = None
    headers: dict = {}
    elapsed_ms: float = 0.0
    error: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def transport_failed(self) -> bool:
        return self.status_code == 0
