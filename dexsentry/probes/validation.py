"""
Phase 2 probes — input validation, token validation, error leakage
and quote consistency.
"""

from __future__ import annotations

import json
import re

from dexsentry.config import BURST_CONCURRENCY, TOKEN_GALA
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import BaseProbe, rejected
from dexsentry.probes.burst import burst
from dexsentry.probes.infrastructure import PRICE_PATH, QUOTE_PATH, amount_out, quote_params


class InputValidationProbe(BaseProbe):
    """Boundary and injection values for ``amountIn`` on the quote endpoint."""

    name = "Input Validation"
    category = "Input & Token Validation"
    description = "Sends malformed amounts and expects HTTP 400"
    fail_severity = Severity.MEDIUM
    pass_message = "Invalid amounts are rejected with 4xx"
    fail_message = "Add strict numeric validation for trade amounts"

    CASES = [
        ("0", "Zero amount"),
        ("-100", "Negative amount"),
        ("999999999999999999999", "Extremely large amount"),
        ("NaN", "Not a number"),
        ("null", "Null value"),
        ("1e308", "Scientific notation overflow"),
        ("0x1234", "Hex value"),
        ("../etc/passwd", "Path traversal attempt"),
        ("1; DROP TABLE pools;", "SQL injection attempt"),
    ]

    async def probe(self, client):
        cases: list[dict] = []
        server_errors = 0
        for amount, description in self.CASES:
            resp = await self.get(client, QUOTE_PATH, quote_params(amount))
            entry = self.case(f"{description} ({amount})", resp, vulnerable=not rejected(resp))
            if resp.status_code >= 500:
                server_errors += 1
                entry["result"] = f"Unexpected response (HTTP {resp.status_code})"
            cases.append(entry)
            await self.pause()

        severity = Severity.HIGH if server_errors else None
        return self.finish(cases, severity=severity)


class TokenValidationProbe(BaseProbe):
    """Malformed token identifiers on the price endpoint."""

    name = "Token Validation"
    category = "Input & Token Validation"
    description = "Requests prices for non-existent and malicious token keys"
    fail_severity = Severity.HIGH
    pass_message = "Invalid tokens are rejected"
    fail_message = "Validate token identifiers against the registered token list"

    TOKENS = [
        ("FAKE$Unit$none$none", "Non-existent token"),
        ("GALA$Unit$none$../../", "Path traversal in key"),
        ("GALA$Unit$<script>alert(1)</script>$none", "Script injection in key"),
        ("GALA$Unit$none$none; DROP TABLE;", "SQL injection in key"),
        ("GALA$Unit$" + "A" * 1000 + "$none", "Oversized key"),
    ]

    async def probe(self, client):
        cases = []
        for token, description in self.TOKENS:
            resp = await self.get(client, PRICE_PATH, {"token": token})
            cases.append(self.case(description, resp, vulnerable=resp.status_code not in (400, 404)))
            await self.pause()
        return self.finish(cases)


class ErrorLeakageProbe(BaseProbe):
    """Look for stack traces and internals in error bodies."""

    name = "Error Information Leakage"
    category = "Input & Token Validation"
    description = "Triggers error responses and scans them for sensitive details"
    fail_severity = Severity.HIGH
    pass_message = "Error responses do not reveal internals"
    fail_message = "Return generic error messages; log details server-side only"

    PROBES = [
        ("/v1/trade/../../../etc/passwd", None),
        ("/v1/admin/pools", None),
        (QUOTE_PATH, {"test": "<script>alert(1)</script>"}),
        (QUOTE_PATH, {"tokenIn": "SELECT * FROM pools"}),
    ]

    SENSITIVE_PATTERNS = [
        re.compile(r"/home/", re.I),
        re.compile(r"/usr/", re.I),
        re.compile(r"stack\s*trace", re.I),
        re.compile(r"at \w+\s*\(", re.I),
        re.compile(r"\bsql\b", re.I),
        re.compile(r"database", re.I),
        re.compile(r"\btable\b", re.I),
        re.compile(r"\bcolumn\b", re.I),
        re.compile(r"internal server", re.I),
    ]

    def leaks(self, response: ProbeResponse) -> list[str]:
        if response.ok or response.transport_failed:
            return []
        text = response.body
        if response.data is not None:
            text = json.dumps(response.data)
        return [p.pattern for p in self.SENSITIVE_PATTERNS if p.search(text)]

    async def probe(self, client):
        cases = []
        for path, params in self.PROBES:
            resp = await self.get(client, path, params)
            found = self.leaks(resp)
            entry = self.case(path, resp, vulnerable=bool(found))
            if found:
                entry["result"] = f"Error reveals sensitive info: {len(found)} patterns - VULNERABILITY"
                entry["patterns"] = found
            cases.append(entry)
            await self.pause()
        return self.finish(cases)


class QuoteConsistencyProbe(BaseProbe):
    """Identical quotes fired concurrently should agree."""

    name = "Quote Consistency"
    category = "Input & Token Validation"
    description = "Fires identical quote requests in parallel and compares amountOut"
    fail_severity = Severity.MEDIUM
    pass_message = "Consistent quotes in parallel requests"
    fail_message = "Quotes differ between simultaneous identical requests; check for racy state reads"

    def __init__(self, requests: int = 10, concurrency: int = BURST_CONCURRENCY, **kwargs) -> None:
        super().__init__(**kwargs)
        self.requests = requests
        self.concurrency = concurrency

    async def probe(self, client):
        async def _send(_i: int) -> ProbeResponse:
            return await self.get(client, QUOTE_PATH, quote_params("1000"))

        responses = await burst(self.requests, _send, self.concurrency)
        if all(r.transport_failed for r in responses):
            return self.transport_record("no quote could be fetched")

        amounts = [a for a in (amount_out(r) for r in responses) if a is not None]
        unique = sorted(set(amounts))
        details = {
            "message": (
                f"Inconsistent quotes in parallel requests: {', '.join(repr(a) for a in unique)}"
                if len(unique) > 1 else
                f"{len(amounts)} of {self.requests} parallel quotes agreed"
            ),
            "token": TOKEN_GALA,
            "quotes": len(amounts),
        }
        return self.record(len(unique) <= 1, details)
