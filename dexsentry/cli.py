"""
dexsentry — CLI entry point for the DEX security monitor.

Workflow:
    1. Probe the target:  dexsentry run --phase 1 --phase 2
       Each phase writes one PhaseResult JSON file to the results directory.

    2. Report:            dexsentry report --format markdown
       Aggregates every result file on disk into one de-duplicated report.

    3. Watch:             dexsentry dashboard --port 3001
       Serves the HTML dashboard, rebuilt from disk on every page load.

    4. Monitor:           dexsentry schedule --run-now
       Critical tests every 5 minutes, phase 1 hourly, phase 2 every
       6 hours, a Markdown report daily.

Result files are plain JSON and never rewritten; delete old ones with
``dexsentry prune --keep N``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dexsentry.config import (
    DASHBOARD_HOST,
    DASHBOARD_PORT,
    DEDUP_POLICY,
    REPORTS_DIR,
    RESULTS_DIR,
    TARGET_BASE_URL,
    TRANSPORT_ERROR_POLICY,
)
from dexsentry.errors import ConfigError, DexSentryError, ResultsNotFoundError

log = logging.getLogger(__name__)

POLICY_CHOICES = ["PASS", "FAIL", "UNKNOWN"]
DEDUP_CHOICES = ["highest_severity", "latest_run"]


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="[%(name)s] %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _check_settings(args):
    """argparse only validates explicit flags; defaults come from the environment."""
    policy = getattr(args, "policy", None)
    if policy is not None and policy not in POLICY_CHOICES:
        raise ConfigError(
            f"DEXSENTRY_TRANSPORT_ERROR_POLICY={policy!r} is not one of {', '.join(POLICY_CHOICES)}"
        )
    dedup = getattr(args, "dedup", None)
    if dedup is not None and dedup not in DEDUP_CHOICES:
        raise ConfigError(
            f"DEXSENTRY_DEDUP_POLICY={dedup!r} is not one of {', '.join(DEDUP_CHOICES)}"
        )


def _store(args):
    from dexsentry.storage.results import ResultStore
    return ResultStore(args.results_dir)


# ── Subcommands ───────────────────────────────────────────────────────────────


def cmd_run(args):
    """Run one or more phases against the target."""
    from dexsentry.alerts import AlertManager
    from dexsentry.models.records import TransportErrorPolicy
    from dexsentry.phases import ALL_PHASES, get_phase
    from dexsentry.runner import PhaseRunner

    keys = list(ALL_PHASES) if args.all else (args.phase or ["1"])
    phases = [get_phase(k) for k in keys]

    runner = PhaseRunner(
        store=_store(args),
        base_url=args.target,
        policy=TransportErrorPolicy(args.policy),
        alerts=None if args.no_alerts else AlertManager(),
        concurrency=args.concurrency,
    )
    print(f"[run] Target: {args.target}")
    print(f"[run] Phases: {', '.join(p.label for p in phases)}")
    print(f"[run] Transport errors count as: {args.policy}")
    print()

    outcomes = asyncio.run(runner.run_phases(phases))

    print()
    failed = 0
    for o in outcomes:
        r = o.result
        failed += r.failed
        print(f"  {r.phase:<40} {r.passed}/{r.total_tests} passed  -> {o.path}")
    return 1 if failed and args.fail_on_findings else 0


def cmd_report(args):
    """Aggregate stored results and render a report."""
    from dexsentry.aggregator import Aggregator
    from dexsentry.reports.generator import generate_report

    store = _store(args)
    if not store.files():
        raise ResultsNotFoundError(f"no result files in {store.results_dir}; run `dexsentry run` first")

    report = Aggregator(store=store, policy=args.dedup).aggregate()
    path = generate_report(
        report,
        fmt=args.format,
        output_path=args.output,
        reports_dir=args.reports_dir,
    )
    if path is not None:
        print(f"[report] {args.format} report saved to: {path}")
    return 0


def cmd_dashboard(args):
    """Serve the HTML dashboard."""
    from dexsentry.main import serve
    serve(host=args.host, port=args.port, results_dir=args.results_dir, dedup_policy=args.dedup)
    return 0


def cmd_schedule(args):
    """Run the monitoring schedule until interrupted."""
    from dexsentry.alerts import AlertManager
    from dexsentry.models.records import TransportErrorPolicy
    from dexsentry.runner import PhaseRunner
    from dexsentry.scheduler import Scheduler

    runner = PhaseRunner(
        store=_store(args),
        base_url=args.target,
        policy=TransportErrorPolicy(args.policy),
        alerts=AlertManager(),
    )
    scheduler = Scheduler(runner, reports_dir=args.reports_dir)
    print("[schedule] Security monitoring scheduled:")
    print("  - Critical tests: every 5 minutes")
    print("  - Phase 1 tests: every hour")
    print("  - Phase 2 tests: every 6 hours")
    print("  - Report: daily")
    print("[schedule] Press Ctrl+C to stop.")
    try:
        asyncio.run(scheduler.run_forever(run_now=args.run_now))
    except KeyboardInterrupt:
        print("\n[schedule] Stopped.")
    return 0


def cmd_phases(args):
    """List registered phases and their probes."""
    from rich.console import Console
    from rich.table import Table

    from dexsentry.phases import PHASES

    table = Table(title="Phases")
    table.add_column("Key", width=9)
    table.add_column("Label", width=36)
    table.add_column("Probes")
    for key, phase in PHASES.items():
        table.add_row(key, phase.label, ", ".join(phase.describe()))
    Console().print(table)
    return 0


def cmd_alerts(args):
    """Show alert statistics from the alerts log."""
    from rich.console import Console
    from rich.table import Table

    from dexsentry.alerts import AlertManager

    stats = AlertManager().stats()
    console = Console()
    console.print(f"[bold]Total alerts:[/bold] {stats['totalAlerts']}")
    for sev, n in sorted(stats["bySeverity"].items()):
        console.print(f"  {sev}: {n}")
    if stats["recentAlerts"]:
        table = Table(title="Recent Alerts")
        table.add_column("Time", width=27)
        table.add_column("Severity", width=9)
        table.add_column("Test")
        for a in stats["recentAlerts"]:
            table.add_row(a.get("timestamp", ""), a.get("severity", ""), a.get("test", ""))
        console.print(table)
    return 0


def cmd_prune(args):
    """Delete all but the newest result files."""
    removed = _store(args).prune(args.keep)
    print(f"[prune] Removed {len(removed)} result file(s)")
    return 0


# ── Argument parser ───────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dexsentry",
        description="Black-box security monitor for a DEX backend. "
                    "Run > Report > Dashboard.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  dexsentry run --phase 1 --phase 3
  dexsentry run --all --policy UNKNOWN --concurrency 10
  dexsentry report --format html --output report.html
  dexsentry dashboard --port 3001
""",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument(
        "--results-dir", type=Path, default=RESULTS_DIR,
        help=f"Directory of PhaseResult files (default: {RESULTS_DIR})",
    )
    parser.add_argument(
        "--target", type=str, default=TARGET_BASE_URL,
        help=f"Base URL of the target API (default: {TARGET_BASE_URL})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- run -------------------------------------------------------------------
    p_run = subparsers.add_parser("run", help="Run probe phases against the target")
    group = p_run.add_mutually_exclusive_group()
    group.add_argument(
        "--phase", "-p", action="append",
        help="Phase key to run (repeatable; see `dexsentry phases`). Default: 1",
    )
    group.add_argument("--all", action="store_true", help="Run every numbered phase")
    p_run.add_argument(
        "--policy", type=str.upper, default=TRANSPORT_ERROR_POLICY, choices=POLICY_CHOICES,
        help=f"How timeouts/refused connections are judged (default: {TRANSPORT_ERROR_POLICY})",
    )
    p_run.add_argument(
        "--concurrency", "-c", type=int, default=None,
        help="Max in-flight requests during bursts",
    )
    p_run.add_argument("--no-alerts", action="store_true", help="Do not raise alerts")
    p_run.add_argument(
        "--fail-on-findings", action="store_true",
        help="Exit 1 when any test failed",
    )
    p_run.set_defaults(func=cmd_run)

    # -- report ----------------------------------------------------------------
    p_report = subparsers.add_parser("report", help="Aggregate results into a report")
    p_report.add_argument(
        "--format", "-f", type=str, default="markdown",
        choices=["markdown", "html", "json", "console"],
        help="Report format (default: markdown)",
    )
    p_report.add_argument(
        "--output", "-o", type=Path, default=None,
        help="Output file (default: timestamped file in the reports directory)",
    )
    p_report.add_argument("--reports-dir", type=Path, default=REPORTS_DIR)
    p_report.add_argument(
        "--dedup", type=str, default=DEDUP_POLICY, choices=DEDUP_CHOICES,
        help=f"How repeated test names are merged (default: {DEDUP_POLICY})",
    )
    p_report.set_defaults(func=cmd_report)

    # -- dashboard -------------------------------------------------------------
    p_dash = subparsers.add_parser("dashboard", help="Serve the HTML dashboard")
    p_dash.add_argument("--host", type=str, default=DASHBOARD_HOST)
    p_dash.add_argument("--port", type=int, default=DASHBOARD_PORT)
    p_dash.add_argument("--dedup", type=str, default=DEDUP_POLICY, choices=DEDUP_CHOICES)
    p_dash.set_defaults(func=cmd_dashboard)

    # -- schedule --------------------------------------------------------------
    p_sched = subparsers.add_parser("schedule", help="Run continuous monitoring")
    p_sched.add_argument("--run-now", action="store_true", help="Run every job once immediately")
    p_sched.add_argument(
        "--policy", type=str.upper, default=TRANSPORT_ERROR_POLICY, choices=POLICY_CHOICES,
    )
    p_sched.add_argument("--reports-dir", type=Path, default=REPORTS_DIR)
    p_sched.set_defaults(func=cmd_schedule)

    # -- phases / alerts / prune -----------------------------------------------
    subparsers.add_parser("phases", help="List phases and their probes").set_defaults(func=cmd_phases)
    subparsers.add_parser("alerts", help="Show alert statistics").set_defaults(func=cmd_alerts)

    p_prune = subparsers.add_parser("prune", help="Delete old result files")
    p_prune.add_argument("--keep", type=int, required=True, help="Number of newest files to keep")
    p_prune.set_defaults(func=cmd_prune)

    return parser


# ── Entry point ───────────────────────────────────────────────────────────────


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    _setup_logging(args.verbose)
    try:
        _check_settings(args)
        code = args.func(args)
    except DexSentryError as e:
        print(f"[error] {e}")
        sys.exit(1)
    sys.exit(code or 0)


if __name__ == "__main__":
    main()
