"""
Centralised configuration — all tunables in one place.
Override via environment variables where noted.
"""

import os
from pathlib import Path

# ── Target ─────────────────────────────────────────────────────────
TARGET_BASE_URL = os.getenv(
    "DEXSENTRY_TARGET_URL",
    os.getenv("GALASWAP_API_URL", "https://dex-backend-prod1.defi.gala.com"),
).rstrip("/")

# Read for parity with the trading tooling that shares this .env;
# no probe signs anything with them.
WALLET_ADDRESS = os.getenv("WALLET_ADDRESS", "")
PRIVATE_KEY = os.getenv("PRIVATE_KEY", "")

# ── Storage ────────────────────────────────────────────────────────
RESULTS_DIR = Path(os.getenv("DEXSENTRY_RESULTS_DIR", "./security-results"))
REPORTS_DIR = Path(os.getenv("DEXSENTRY_REPORTS_DIR", "./security-reports"))
ALERTS_FILE = Path(os.getenv("DEXSENTRY_ALERTS_FILE", "./security-alerts.log"))

# ── Dashboard ──────────────────────────────────────────────────────
DASHBOARD_HOST = os.getenv("DEXSENTRY_DASHBOARD_HOST", "127.0.0.1")
DASHBOARD_PORT = int(os.getenv("DEXSENTRY_DASHBOARD_PORT", "3001"))
DASHBOARD_REFRESH = 30         # seconds, <meta http-equiv="refresh">

# ── Probing ────────────────────────────────────────────────────────
REQUEST_TIMEOUT = float(os.getenv("DEXSENTRY_REQUEST_TIMEOUT", "10.0"))
BURST_TIMEOUT = 5.0            # seconds per request inside a burst
PROBE_DELAY = 0.1              # seconds between sequential test cases
RESPONSE_CAP = 5_000           # max chars of a response body kept as evidence

RATE_LIMIT_REQUESTS = int(os.getenv("DEXSENTRY_RATE_LIMIT_REQUESTS", "50"))
BURST_CONCURRENCY = int(os.getenv("DEXSENTRY_BURST_CONCURRENCY", "25"))
LOAD_LEVELS = (10, 25, 50)     # concurrent request counts for load probes
SLOW_RESPONSE_MS = 1_000       # average above this is a finding

# Submission floods in the consensus/compliance/attack phases
FLOOD_REQUESTS = int(os.getenv("DEXSENTRY_FLOOD_REQUESTS", "100"))
FLOOD_TIMEOUT = 1.0            # seconds per flood request
LARGE_PAYLOAD_BYTES = int(os.getenv("DEXSENTRY_LARGE_PAYLOAD_BYTES", str(1024 * 1024)))

# "PASS" | "FAIL" | "UNKNOWN": how a timeout / refused connection is judged
TRANSPORT_ERROR_POLICY = os.getenv("DEXSENTRY_TRANSPORT_ERROR_POLICY", "PASS").upper()

# "highest_severity" | "latest_run": how repeated test names are merged
DEDUP_POLICY = os.getenv("DEXSENTRY_DEDUP_POLICY", "highest_severity").lower()

# ── Token identifiers used by the trade probes ─────────────────────
TOKEN_GALA = "GALA$Unit$none$none"
TOKEN_GUSDC = "GUSDC$Unit$none$none"
DEFAULT_FEE_TIER = 10000

# ── Default request headers ──────────────────────────────────────
DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "dexsentry/1.0 (+security-monitor)",
}

# ── Alerts ────────────────────────────────────────────────────────
WEBHOOK_URL = os.getenv("WEBHOOK_URL", "")
SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL", "")
ALERT_THROTTLE_WINDOWS = {     # seconds between repeats of the same alert
    "CRITICAL": 5 * 60,
    "HIGH": 30 * 60,
    "MEDIUM": 60 * 60,
    "LOW": 24 * 60 * 60,
}

# ── Scheduler ─────────────────────────────────────────────────────
SCHEDULE_CRITICAL_INTERVAL = 5 * 60
SCHEDULE_PHASE1_INTERVAL = 60 * 60
SCHEDULE_PHASE2_INTERVAL = 6 * 60 * 60
SCHEDULE_REPORT_INTERVAL = 24 * 60 * 60
