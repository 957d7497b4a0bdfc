"""
Append-only store of PhaseResult JSON files.

One file per run, never rewritten.  File names sort by recency because
the timestamp is the last component and every writer uses the same
ISO-8601 UTC format.
"""

import json
import logging
import re
from pathlib import Path
from typing import Iterator, Optional

from dexsentry.config import RESULTS_DIR
from dexsentry.models.records import PhaseResult

log = logging.getLogger(__name__)

_PHASE_LABEL = re.compile(r"Phase\s+(\d+[A-Za-z]?)\s*-\s*(.+)")
_TIMESTAMP_TAIL = re.compile(r"(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2})(?:-(\d+))?Z?(?:~\d+)?$")


def safe_timestamp(timestamp: str) -> str:
    """``2025-01-02T03:04:05.678+00:00`` -> ``2025-01-02T03-04-05-678Z``"""
    ts = timestamp.replace("+00:00", "Z")
    return ts.replace(":", "-").replace(".", "-")


def result_filename(phase: str, timestamp: str) -> str:
    ts = safe_timestamp(timestamp)
    match = _PHASE_LABEL.search(phase)
    if not match:
        return f"security-{ts}.json"
    number = match.group(1).upper()
    name = re.sub(r"[^A-Za-z0-9]+", "-", match.group(2)).strip("-")
    return f"security-Phase-{number}-{name}-{ts}.json"


def _sort_key(path: Path) -> str:
    match = _TIMESTAMP_TAIL.search(path.stem)
    if not match:
        return path.stem
    # "05Z" and "05-500Z" must compare as 05.000000 and 05.500000
    return f"{match.group(1)}.{(match.group(2) or '').ljust(6, '0')}"


class ResultStore:
    """Results directory as an append-only log of PhaseResult files."""

    def __init__(self, results_dir: Path | str = RESULTS_DIR) -> None:
        self.results_dir = Path(results_dir)

    def save(self, result: PhaseResult) -> Path:
        """Write one PhaseResult.  ``OSError`` propagates to the caller."""
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.results_dir / result_filename(result.phase, result.timestamp)
        n = 1
        while path.exists():
            path = path.with_name(f"{path.stem.rsplit('~', 1)[0]}~{n}.json")
            n += 1

        # "x" mode so a concurrent writer can never clobber this file
        with path.open("x", encoding="utf-8") as f:
            f.write(result.model_dump_json(indent=2))
        log.info("saved %s (%d tests, %d failed)", path.name, result.total_tests, result.failed)
        return path

    def files(self) -> list[Path]:
        """Result files, newest first."""
        if not self.results_dir.is_dir():
            return []
        found = [p for p in self.results_dir.glob("security-*.json") if p.is_file()]
        return sorted(found, key=lambda p: (_sort_key(p), p.name), reverse=True)

    def load_all(self) -> Iterator[tuple[Path, dict]]:
        """Yield ``(path, raw)`` newest first, skipping unreadable files."""
        for path in self.files():
            raw = self.read(path)
            if raw is not None:
                yield path, raw

    def read(self, path: Path) -> Optional[dict]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning("skipping malformed result file %s: %s", path.name, e)
            return None
        if not isinstance(raw, dict):
            log.warning("skipping %s: top level is %s, not an object", path.name, type(raw).__name__)
            return None
        return raw

    def latest(self, limit: int = 1) -> list[dict]:
        out = []
        for _path, raw in self.load_all():
            out.append(raw)
            if len(out) >= limit:
                break
        return out

    def prune(self, keep: int) -> list[Path]:
        """Delete all but the newest *keep* files.  Manual only."""
        removed = []
        for path in self.files()[max(0, keep):]:
            path.unlink()
            removed.append(path)
        if removed:
            log.info("pruned %d result file(s)", len(removed))
        return removed
