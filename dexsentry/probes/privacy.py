"""
Phase 7 probes — private data collections, channel isolation, key
handling, anonymisation, zero-knowledge proofs and metadata leakage.
"""

from __future__ import annotations

from dexsentry.models.records import Severity
from dexsentry.probes.base import (
    Attempt,
    AttemptProbe,
    BaseProbe,
    above,
    any_of,
    dig,
    flag,
    truthy,
)

CATEGORY = "Privacy & Confidentiality"
SUBMIT_PATH = "/v1/transactions/submit"

KEY_MARKERS = ("private_key", "encryption_key")
METADATA_FIELDS = ("userIPs", "sessionTokens", "deviceFingerprints")

_reidentified = any_of(above("identitiesRevealed"), truthy("anonymityBroken"))


def _logs_expose_keys(data) -> bool:
    logs = dig(data, "logs")
    if not isinstance(logs, list):
        return False
    for entry in logs:
        message = entry.get("message") if isinstance(entry, dict) else entry
        if isinstance(message, str) and any(m in message for m in KEY_MARKERS):
            return True
    return False


class PrivateDataProbe(AttemptProbe):
    name = "Private Data Collection Security"
    category = CATEGORY
    description = "Reads, plants and un-purges private data from an outside MSP"
    fail_severity = Severity.CRITICAL
    pass_message = "Private data collections properly secured"
    fail_message = "Implement strict private data access controls and hash validation"

    ATTEMPTS = [
        Attempt("Unauthorized Private Data Access", "/v1/private-data/trading-secrets",
                method="GET",
                params={"collection": "trading-secrets", "key": "secret_trading_algorithm"},
                headers={"X-MSP-ID": "UnauthorizedMSP"},
                hit=truthy("value")),
        Attempt("Private Data Hash Collision", "/v1/private-data/store", {
            "collection": "trading-secrets",
            "key": "collision_test",
            "value": "malicious_data",
            "forceHash": "0x" + "ab" * 32,
        }),
        Attempt("Purged Data Recovery", "/v1/private-data/query", {
            "collection": "expired_data",
            "bypassPurge": True,
        }, hit=truthy("records")),
    ]


class ChannelIsolationProbe(AttemptProbe):
    name = "Channel Isolation Attacks"
    category = CATEGORY
    description = "Asks the isolation test endpoint to leak data across channels"
    fail_severity = Severity.HIGH
    pass_message = "Channel isolation properly maintained"
    fail_message = "Strengthen channel isolation and prevent cross-channel data access"

    PATH = "/v1/channels/isolation-test"
    ATTEMPTS = [
        Attempt("Cross-Channel Data Leakage", PATH, {
            "sourceChannel": "public-channel",
            "targetChannel": "private-channel",
            "action": "read_state",
        }, hit=flag("isolationBroken")),
        Attempt("Channel State Database Access", PATH, {
            "action": "direct_db_access",
            "database": "private-channel_statedb",
        }, hit=flag("isolationBroken")),
        Attempt("Inter-Channel Communication", PATH, {
            "action": "send_message",
            "fromChannel": "public-channel",
            "toChannel": "private-channel",
        }, hit=flag("isolationBroken")),
        Attempt("Channel Event Interception", PATH, {
            "action": "intercept_events",
            "targetChannel": "private-channel",
        }, hit=flag("isolationBroken")),
    ]


class KeyManagementProbe(AttemptProbe):
    name = "Encryption Key Management"
    category = CATEGORY
    description = "Requests weak keys, decryption with rotated keys and key material in logs"
    fail_severity = Severity.CRITICAL
    pass_message = "Encryption key management properly secured"
    fail_message = "Implement strong key management practices and secure key rotation"

    ATTEMPTS = [
        Attempt("Weak Key Generation", "/v1/crypto/generate-key", {
            "algorithm": "DES", "keySize": 56,
        }),
        Attempt("Key Rotation Bypass", "/v1/private-data/decrypt", {
            "encryptedData": "ENCRYPTED_WITH_OLD_KEY",
            "forceOldKey": True,
        }, hit=truthy("decrypted")),
        Attempt("Key Material in Logs", "/v1/system/logs", method="GET",
                params={"level": "DEBUG", "component": "crypto", "includeKeys": "true"},
                hit=_logs_expose_keys),
    ]


class AnonymizationProbe(AttemptProbe):
    name = "Data Anonymization Attacks"
    category = CATEGORY
    description = "Asks the anonymisation test endpoint to re-identify users"
    fail_severity = Severity.HIGH
    pass_message = "Data anonymization properly implemented"
    fail_message = "Strengthen anonymization techniques and prevent correlation attacks"

    PATH = "/v1/privacy/anonymization-test"
    ATTEMPTS = [
        Attempt("Transaction Graph Analysis", PATH, {
            "technique": "graph_analysis", "depth": 5,
        }, hit=_reidentified),
        Attempt("Timing Correlation Attack", PATH, {
            "technique": "timing_correlation", "window": "1h",
        }, hit=_reidentified),
        Attempt("Amount Fingerprinting", PATH, {
            "technique": "amount_fingerprint", "precision": 18,
        }, hit=_reidentified),
        Attempt("Cross-Reference Attack", PATH, {
            "technique": "cross_reference", "externalSources": ["social_media", "exchange_kyc"],
        }, hit=_reidentified),
    ]


class ZeroKnowledgeProbe(AttemptProbe):
    name = "Zero-Knowledge Proof Vulnerabilities"
    category = CATEGORY
    description = "Submits forged proofs, a trusted-setup takeover and an unauthorised proof request"
    fail_severity = Severity.CRITICAL
    pass_message = "Zero-knowledge proofs properly implemented"
    fail_message = "Implement secure ZK proof systems with proper trusted setup"

    ATTEMPTS = [
        Attempt("Proof Forgery", "/v1/zk/verify-proof", {
            "proof": "FORGED_PROOF_DATA",
            "publicInputs": ["1000000"],
            "verificationKey": "MALICIOUS_VK",
        }, hit=flag("verified")),
        Attempt("Trusted Setup Compromise", "/v1/zk/setup", {
            "ceremony": "malicious_ceremony",
            "toxicWaste": "RETAINED",
        }),
        Attempt("Unauthorized Proof Generation", "/v1/zk/generate-proof", {
            "statement": "balance >= 1000000",
            "witness": "FAKE_WITNESS",
        }, hit=truthy("proof")),
    ]


class MetadataLeakageProbe(BaseProbe):
    """Per-user timing differences and verbose traffic metadata."""

    name = "Metadata Leakage"
    category = CATEGORY
    description = "Compares response times across users and asks for traffic metadata"
    fail_severity = Severity.MEDIUM
    pass_message = "Metadata properly protected"
    fail_message = "Implement metadata protection and timing attack mitigation"

    USERS = 3
    # Average response time gap between users that makes them distinguishable
    MAX_TIMING_GAP_MS = 100.0

    def __init__(self, samples: int = 10, **kwargs) -> None:
        super().__init__(**kwargs)
        self.samples = samples

    async def probe(self, client):
        timings: dict[str, list[float]] = {}
        for i in range(self.samples):
            user = f"user_{i % self.USERS}"
            resp = await self.post(client, SUBMIT_PATH, {
                "transaction": {"chaincode": "trading", "function": "getBalance", "args": [user]},
            })
            if not resp.transport_failed:
                timings.setdefault(user, []).append(resp.elapsed_ms)
            await self.pause()

        averages = {u: round(sum(t) / len(t), 2) for u, t in timings.items()}
        gap = max(averages.values()) - min(averages.values()) if averages else 0.0
        timing_case = {
            "case": "Transaction Timing Analysis",
            "status": 200 if averages else 0,
            "result": f"Max timing difference {gap:.2f}ms between users",
            "vulnerable": gap > self.MAX_TIMING_GAP_MS if averages else self.transport_verdict(),
            "avgTimings": averages,
        }

        traffic = await self.get(client, "/v1/network/traffic-patterns", {
            "includeMetadata": "true", "timeWindow": "1h", "detailLevel": "verbose",
        })
        exposed = [f for f in METADATA_FIELDS if dig(traffic.data, f"metadata.{f}")]
        traffic_case = self.case(
            "Network Traffic Analysis", traffic,
            vulnerable=traffic.status_code == 200 and bool(exposed),
        )
        if exposed:
            traffic_case["exposed"] = exposed

        if not averages and traffic.transport_failed:
            return self.transport_record("no request got a response")
        return self.finish([timing_case, traffic_case])
