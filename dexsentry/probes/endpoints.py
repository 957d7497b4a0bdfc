"""
Advanced endpoint probes — token metadata injection, bundle submission
and bulk history access.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from dexsentry.config import TOKEN_GALA
from dexsentry.models.records import Severity
from dexsentry.probes.base import BaseProbe, dig
from dexsentry.probes.extended import ORACLE_FETCH_PATH
from dexsentry.probes.infrastructure import PRICE_PATH

CATEGORY = "Advanced Endpoints"


class TokenMetadataProbe(BaseProbe):
    """Hostile collection and key strings in a token id."""

    name = "Token Metadata Injection"
    category = CATEGORY
    description = "Asks for prices of tokens whose fields carry markup, traversal and padding"
    fail_severity = Severity.MEDIUM
    pass_message = "Token metadata inputs rejected"
    fail_message = "Sanitize token metadata inputs"

    TOKENS = [
        ("Script tag collection", "<script>alert(1)</script>$Unit$none$none"),
        ("Path traversal collection", "../../etc/passwd$Unit$none$none"),
        ("Oversized additional key", "GALA$Unit$none$" + "none" * 1000),
    ]

    async def probe(self, client):
        cases = []
        for description, token in self.TOKENS:
            resp = await self.get(client, PRICE_PATH, {"token": token})
            cases.append(self.case(description, resp, vulnerable=resp.ok))
            await self.pause()
        return self.finish(cases)


class BundleSubmissionProbe(BaseProbe):
    """Malformed bundles must be refused."""

    name = "Bundle Submission Validation"
    category = CATEGORY
    description = "Posts null, empty, oversized and traversal bundles"
    fail_severity = Severity.HIGH
    pass_message = "Malformed bundles rejected"
    fail_message = "Validate bundle structure and authentication"

    PATH = "/v1/trade/bundle"
    BUNDLES = [
        ("Null bundle", {"bundle": None}),
        ("Empty bundle", {"bundle": []}),
        ("1000 fake transactions", {"bundle": [{"tx": "fake"}] * 1000}),
        ("Path traversal", {"bundle": {"transactions": "../../../etc/passwd"}}),
    ]

    async def probe(self, client):
        cases = []
        for description, body in self.BUNDLES:
            resp = await self.post(client, self.PATH, body)
            cases.append(self.case(description, resp, vulnerable=resp.ok))
            await self.pause()
        return self.finish(cases)


class HistoricalDataProbe(BaseProbe):
    """A year of price history in one page should be capped."""

    name = "Historical Data Access"
    category = CATEGORY
    description = "Requests 100000 rows of price history in a single page"
    fail_severity = Severity.LOW
    pass_message = "Data access controls working"
    fail_message = "Implement pagination limits"

    REQUESTED = 100000
    MAX_ROWS = 10000

    async def probe(self, client):
        since = datetime.now(timezone.utc) - timedelta(days=365)
        resp = await self.get(client, ORACLE_FETCH_PATH, {
            "token": TOKEN_GALA,
            "page": 1,
            "limit": self.REQUESTED,
            "from": since.isoformat(timespec="seconds"),
            "order": "desc",
        })
        if resp.transport_failed:
            return self.transport_record(resp.error)

        rows = dig(resp.data, "data.data")
        returned = len(rows) if resp.ok and isinstance(rows, list) else 0
        details = {
            "requested": self.REQUESTED,
            "returned": returned,
            "status": resp.status_code,
        }
        return self.record(returned < self.MAX_ROWS, details)
