"""
Report dispatch — render an AggregatedReport in the requested format
and optionally save it under the reports directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from dexsentry.config import REPORTS_DIR
from dexsentry.models.records import AggregatedReport, utc_now
from dexsentry.reports.console import render_console
from dexsentry.reports.html import render_html
from dexsentry.reports.markdown import render_markdown
from dexsentry.storage.results import safe_timestamp

log = logging.getLogger(__name__)

FORMATS = ("markdown", "html", "json", "console")
EXTENSIONS = {"markdown": "md", "html": "html", "json": "json"}


def render(report: AggregatedReport, fmt: str = "markdown") -> str:
    """Text of the report.  Console output has no text form."""
    if fmt == "markdown":
        return render_markdown(report)
    if fmt == "html":
        return render_html(report)
    if fmt == "json":
        return report.model_dump_json(indent=2)
    raise ValueError(f"unknown report format: {fmt}")


def save_report(
    text: str,
    fmt: str = "markdown",
    reports_dir: Path | str = REPORTS_DIR,
    output_path: Optional[Path | str] = None,
) -> Path:
    if output_path is not None:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
    else:
        reports_dir = Path(reports_dir)
        reports_dir.mkdir(parents=True, exist_ok=True)
        path = reports_dir / f"report-{safe_timestamp(utc_now())}.{EXTENSIONS[fmt]}"
    path.write_text(text, encoding="utf-8")
    log.info("%s report saved to %s", fmt, path)
    return path


def generate_report(
    report: AggregatedReport,
    fmt: str = "markdown",
    output_path: Optional[Path | str] = None,
    reports_dir: Path | str = REPORTS_DIR,
    console: Optional[Console] = None,
) -> Optional[Path]:
    """Render *report* and write it out.

    ``console`` prints rich tables and returns None; every other format
    is written to *output_path*, or to a timestamped file under
    *reports_dir*.
    """
    if fmt == "console":
        render_console(report, console)
        return None
    return save_report(render(report, fmt), fmt, reports_dir, output_path)
