"""
Phase 8 probes — AML/KYC, jurisdiction, regulatory reporting, data
retention, licensing and market manipulation.
"""

from __future__ import annotations

from dexsentry.config import BURST_CONCURRENCY, TOKEN_GALA, TOKEN_GUSDC
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import Attempt, AttemptProbe, flag, missing, truthy
from dexsentry.probes.burst import burst, timed_burst

CATEGORY = "Compliance & Regulatory"
EXECUTE_PATH = "/v1/trade/execute"

_retention_violated = flag("dataDeleted", "transferAllowed", "complianceViolated")

SANCTIONED_ADDRESSES = [
    "0x1234567890123456789012345678901234567890",
    "0xDEADBEEFDEADBEEFDEADBEEFDEADBEEFDEADBEEF",
]


def trade(amount: str, **extra) -> dict:
    body = {"tokenIn": TOKEN_GALA, "tokenOut": TOKEN_GUSDC, "amountIn": amount}
    body.update(extra)
    return body


class AmlKycProbe(AttemptProbe):
    """Unverified trading, split trades past a daily limit and sanctioned senders."""

    name = "AML/KYC Bypass Attempts"
    category = CATEGORY
    description = "Trades as an unverified user, past a daily limit and from sanctioned addresses"
    fail_severity = Severity.CRITICAL
    pass_message = "AML/KYC controls properly enforced"
    fail_message = "Implement strict AML/KYC validation and transaction monitoring"

    ATTEMPTS = [
        Attempt("Unverified User Trading", EXECUTE_PATH, trade("50000", user={
            "id": "unverified_user",
            "kycStatus": "PENDING",
            "amlCheck": "NOT_COMPLETED",
        }), hit=truthy("executed")),
    ] + [
        Attempt(f"Sanctioned Address Bypass ({address[:10]}...)", EXECUTE_PATH,
                trade("1000", fromAddress=address))
        for address in SANCTIONED_ADDRESSES
    ]

    TRADE_AMOUNT = 2000
    DAILY_LIMIT = 10000

    def __init__(self, trades: int = 20, concurrency: int = BURST_CONCURRENCY, **kwargs) -> None:
        super().__init__(**kwargs)
        self.trades = trades
        self.concurrency = concurrency

    async def probe(self, client):
        cases = await self.attempt_cases(client)

        async def _split(_i: int) -> ProbeResponse:
            return await self.post(client, EXECUTE_PATH, trade(
                str(self.TRADE_AMOUNT),
                user={"id": "limit_test_user", "dailyLimit": str(self.DAILY_LIMIT)},
            ))

        stats = await timed_burst(self.trades, _split, self.concurrency)
        total = stats.statuses.get(200, 0) * self.TRADE_AMOUNT
        entry = self.burst_case("Transaction Limit Bypass", stats, vulnerable=total > self.DAILY_LIMIT)
        entry["totalValue"] = total
        entry["dailyLimit"] = self.DAILY_LIMIT
        cases.append(entry)
        return self.finish(cases)


class JurisdictionProbe(AttemptProbe):
    name = "Jurisdiction Control Bypass"
    category = CATEGORY
    description = "Asks for access from restricted jurisdictions through spoofed location signals"
    fail_severity = Severity.HIGH
    pass_message = "Jurisdiction controls properly enforced"
    fail_message = "Implement robust geolocation validation and IP analysis"

    PATH = "/v1/compliance/jurisdiction-test"
    ATTEMPTS = [
        Attempt("Geolocation Bypass", PATH, {
            "userLocation": "RESTRICTED_COUNTRY",
            "vpnDetected": False,
            "spoofedLocation": "ALLOWED_COUNTRY",
        }, headers={"X-Forwarded-For": "192.168.1.1", "CF-IPCountry": "US"},
            hit=flag("accessGranted")),
        Attempt("IP Spoofing Detection", PATH, {
            "realIP": "10.0.0.1",
            "spoofedIP": "8.8.8.8",
            "userAgent": "Mozilla/5.0 (compatible; GoogleBot/2.1)",
        }, hit=flag("accessGranted")),
        Attempt("Cross-Border Transaction Restrictions", PATH, {
            "fromCountry": "US",
            "toCountry": "SANCTIONED_COUNTRY",
            "amount": "10000",
            "purpose": "business",
        }, hit=flag("accessGranted")),
        Attempt("Regulatory Reporting Bypass", PATH, {
            "transactionAmount": "9999",
            "structuring": True,
            "avoidReporting": True,
        }, hit=flag("accessGranted")),
    ]


class RegulatoryReportingProbe(AttemptProbe):
    name = "Regulatory Reporting Failures"
    category = CATEGORY
    description = "Submits reportable activity and checks that a report was filed"
    fail_severity = Severity.CRITICAL
    pass_message = "Regulatory reporting working correctly"
    fail_message = "Implement mandatory regulatory reporting for all applicable transactions"

    ATTEMPTS = [
        Attempt("Suspicious Activity Reporting", "/v1/trade/suspicious-pattern", {
            "pattern": "STRUCTURING",
            "transactions": [{"amount": "9999"}, {"amount": "9999"}, {"amount": "9999"}],
            "timeframe": "24h",
        }, hit=missing("sarFiled")),
        Attempt("Large Transaction Reporting", "/v1/trade/large-transaction", trade(
            "50000", skipReporting=True,
        ), hit=missing("ctrFiled")),
        Attempt("Cross-Border Reporting", "/v1/compliance/cross-border", {
            "amount": "25000",
            "fromCountry": "US",
            "toCountry": "CH",
            "reportType": "FINCEN_114",
        }, hit=missing("reportSubmitted")),
    ]


class DataRetentionProbe(AttemptProbe):
    name = "Data Retention Compliance"
    category = CATEGORY
    description = "Requests deletions, hold overrides and transfers that retention rules forbid"
    fail_severity = Severity.HIGH
    pass_message = "Data retention policies properly enforced"
    fail_message = "Implement strict data retention and legal hold controls"

    PATH = "/v1/compliance/data-retention"
    ATTEMPTS = [
        Attempt("GDPR Data Deletion", PATH, {
            "action": "delete_user_data",
            "userId": "eu_user_123",
            "retainFinancialRecords": False,
        }, hit=_retention_violated),
        Attempt("Legal Hold Override", PATH, {
            "action": "delete_records",
            "legalHold": True,
            "override": True,
        }, hit=_retention_violated),
        Attempt("Audit Trail Preservation", PATH, {
            "action": "purge_audit_logs",
            "olderThan": "30d",
        }, hit=_retention_violated),
        Attempt("Cross-Jurisdiction Data Transfer", PATH, {
            "action": "transfer_data",
            "fromRegion": "EU",
            "toRegion": "NON_ADEQUATE_COUNTRY",
        }, hit=_retention_violated),
    ]


class LicenseProbe(AttemptProbe):
    name = "License and Registration Validation"
    category = CATEGORY
    description = "Operates with an expired licence, a fake registration and too little capital"
    fail_severity = Severity.CRITICAL
    pass_message = "License and registration validation working correctly"
    fail_message = "Implement strict license validation and capital adequacy checks"

    ATTEMPTS = [
        Attempt("Expired License Operation", "/v1/compliance/license-check", {
            "licenseStatus": "EXPIRED",
            "expiryDate": "2020-01-01",
        }, hit=truthy("operationAllowed")),
        Attempt("Fake Registration", "/v1/compliance/registration", {
            "registrationNumber": "FAKE-REG-000",
            "regulator": "UNKNOWN",
        }, hit=truthy("registrationValid")),
        Attempt("Capital Adequacy Bypass", "/v1/compliance/capital-adequacy", {
            "capitalRatio": 0.5,
            "requiredRatio": 8.0,
        }, hit=truthy("operationAllowed")),
    ]


class MarketManipulationProbe(AttemptProbe):
    """Wash-trade pairs plus a pump-and-dump the surveillance should catch."""

    name = "Market Manipulation Detection"
    category = CATEGORY
    description = "Places matched buy/sell pairs and a pump-and-dump sequence"
    fail_severity = Severity.HIGH
    pass_message = "Market manipulation detection working correctly"
    fail_message = "Implement advanced market surveillance and manipulation detection"

    ATTEMPTS = [
        Attempt("Pump and Dump", "/v1/market/manipulation-test", {
            "pattern": "PUMP_AND_DUMP",
            "token": TOKEN_GALA,
            "phases": [
                {"action": "accumulate", "amount": "100000"},
                {"action": "promote", "channels": ["social_media"]},
                {"action": "dump", "amount": "100000"},
            ],
        }, hit=missing("manipulationDetected")),
    ]

    def __init__(self, pairs: int = 10, concurrency: int = BURST_CONCURRENCY, **kwargs) -> None:
        super().__init__(**kwargs)
        self.pairs = pairs
        self.concurrency = concurrency

    async def probe(self, client):
        async def _leg(i: int) -> ProbeResponse:
            side = "BUY" if i % 2 == 0 else "SELL"
            return await self.post(client, EXECUTE_PATH, trade(
                "1000", side=side, user={"id": "wash_trader"},
            ))

        legs = await burst(self.pairs * 2, _leg, self.concurrency)
        completed = sum(
            1 for buy, sell in zip(legs[::2], legs[1::2])
            if buy.status_code == 200 and sell.status_code == 200
        )
        if all(r.transport_failed for r in legs):
            wash = {
                "case": "Wash Trading",
                "status": 0,
                "result": "No response to any request",
                "vulnerable": self.transport_verdict(),
            }
        else:
            vulnerable = completed > self.pairs // 2
            wash = {
                "case": "Wash Trading",
                "status": 200 if completed else legs[0].status_code,
                "result": f"{completed}/{self.pairs} buy/sell pairs executed"
                          + (" - VULNERABILITY" if vulnerable else ""),
                "vulnerable": vulnerable,
            }
        cases = [wash] + await self.attempt_cases(client)
        return self.finish(cases)
