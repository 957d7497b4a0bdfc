"""
Phase 10 probes — detection of obfuscated and novel payloads, APT
stages, adversarial ML, supply chain, quantum readiness and emerging
protocols.

Most of these talk to self-assessment endpoints; a target that does not
expose them answers 404 and passes.
"""

from __future__ import annotations

import base64
import hashlib
from urllib.parse import quote

from dexsentry.models.records import Severity
from dexsentry.probes.base import (
    Attempt,
    AttemptProbe,
    BaseProbe,
    above,
    dig,
    flag,
    missing,
    rejected,
    truthy,
)

CATEGORY = "Zero-Day & APT"
SCAN_PATH = "/v1/security/scan"
SEARCH_PATH = "/v1/search"
ML_TEST_PATH = "/v1/ml/adversarial-test"

_MARKER = "malicious_payload"
OBFUSCATED_PAYLOADS = [
    ("Base64 encoded", base64.b64encode(_MARKER.encode()).decode()),
    ("String concatenation", "ma" + "li" + "cious" + "_pay" + "load"),
    ("Reversed", _MARKER[::-1]),
    ("URL encoded", quote(_MARKER, safe="")),
    ("MD5 digest", hashlib.md5(_MARKER.encode()).hexdigest()),
]

INJECTION_PAYLOADS = [
    "${7*7}",
    "#{7*7}",
    "<script>alert(1)</script>",
    "'; DROP TABLE users; --",
    "{{7*7}}",
    'eval("7*7")',
]


class NovelPatternProbe(AttemptProbe):
    """Obfuscated payloads must be flagged; injection payloads must be refused."""

    name = "Novel Attack Pattern Detection"
    category = CATEGORY
    description = "Sends obfuscated payloads to the scanner and injection strings to search"
    fail_severity = Severity.HIGH
    pass_message = "Anomaly detection systems working effectively"
    fail_message = "Implement advanced behavioral analysis and machine learning-based threat detection"

    ATTEMPTS = [
        Attempt(f"Zero-Day Signature Bypass ({label})", SCAN_PATH, {
            "content": payload, "type": "OBFUSCATED_INPUT",
        }, hit=missing("threatDetected"))
        for label, payload in OBFUSCATED_PAYLOADS
    ]
    # Share of injection strings that must be refused with 400/403
    MIN_DETECTION_RATE = 0.5

    async def probe(self, client):
        cases = await self.attempt_cases(client)

        refused = answered = 0
        for payload in INJECTION_PAYLOADS:
            resp = await self.post(client, SEARCH_PATH, {"query": payload, "context": "user_input"})
            if not resp.transport_failed:
                answered += 1
                refused += resp.status_code in (400, 403)
            await self.pause()

        if answered:
            rate = refused / len(INJECTION_PAYLOADS)
            vulnerable = rate <= self.MIN_DETECTION_RATE
            cases.append({
                "case": "Metamorphic Code Injection",
                "status": 200,
                "result": f"{refused}/{len(INJECTION_PAYLOADS)} injection payloads refused"
                          + (" - VULNERABILITY" if vulnerable else ""),
                "vulnerable": vulnerable,
            })
        else:
            cases.append({
                "case": "Metamorphic Code Injection",
                "status": 0,
                "result": "No response to any request",
                "vulnerable": self.transport_verdict(),
            })
        return self.finish(cases)


class AptSimulationProbe(BaseProbe):
    """Each APT stage should be refused or reported as a detected threat."""

    name = "Advanced Persistent Threat Simulation"
    category = CATEGORY
    description = "Walks the APT simulation endpoint through four intrusion stages"
    fail_severity = Severity.HIGH
    pass_message = "APT detection and prevention working effectively"
    fail_message = "Implement comprehensive APT defense including behavioral analysis and threat hunting"

    PATH = "/v1/security/apt-simulation"
    STAGES = [
        ("Long-Term Reconnaissance", {
            "phase": "RECONNAISSANCE",
            "duration": "30_days",
            "techniques": [
                "PASSIVE_INFO_GATHERING",
                "NETWORK_TOPOLOGY_MAPPING",
                "EMPLOYEE_PROFILING",
                "SUPPLY_CHAIN_ANALYSIS",
            ],
            "stealth_level": "HIGH",
            "avoid_detection": True,
        }),
        ("Lateral Movement Simulation", {
            "phase": "LATERAL_MOVEMENT",
            "initial_access": "COMPROMISED_ENDPOINT",
            "movement_path": [
                "USER_WORKSTATION", "INTERNAL_NETWORK", "DATABASE_SERVER",
                "API_GATEWAY", "TRADING_ENGINE",
            ],
            "persistence_mechanisms": [
                "SCHEDULED_TASKS", "SERVICE_INSTALLATION",
                "REGISTRY_MODIFICATION", "LEGITIMATE_PROCESS_INJECTION",
            ],
        }),
        ("Data Exfiltration Channels", {
            "phase": "DATA_EXFILTRATION",
            "methods": ["DNS_TUNNELING", "HTTPS_COVERT_CHANNEL", "STEGANOGRAPHY", "CLOUD_STORAGE_ABUSE"],
            "target_data": ["USER_CREDENTIALS", "TRADING_ALGORITHMS", "FINANCIAL_RECORDS", "COMPLIANCE_DOCUMENTS"],
            "avoid_dlp": True,
        }),
        ("Command and Control", {
            "phase": "C2_COMMUNICATION",
            "c2_techniques": [
                "DOMAIN_GENERATION_ALGORITHM", "FAST_FLUX_NETWORKS",
                "LEGITIMATE_SERVICE_ABUSE", "ENCRYPTED_CHANNELS",
            ],
            "communication_schedule": "IRREGULAR",
            "beacon_evasion": True,
        }),
    ]
    # More undetected stages than this is CRITICAL
    CRITICAL_UNDETECTED = 2

    async def probe(self, client):
        cases = []
        for stage, payload in self.STAGES:
            resp = await self.post(client, self.PATH, payload)
            detected = rejected(resp) or (resp.status_code == 200 and bool(dig(resp.data, "threatDetected")))
            entry = self.case(stage, resp, vulnerable=not detected)
            if not resp.transport_failed:
                entry["result"] = "Detected" if detected else f"Undetected (HTTP {resp.status_code}) - VULNERABILITY"
            cases.append(entry)
            await self.pause()

        undetected = sum(1 for c in cases if c["vulnerable"] is True)
        severity = Severity.CRITICAL if undetected > self.CRITICAL_UNDETECTED else None
        return self.finish(cases, severity=severity)


class AdversarialMlProbe(AttemptProbe):
    name = "AI/ML Model Adversarial Attacks"
    category = CATEGORY
    description = "Asks the ML endpoint to accept poisoning, evasion, extraction and inference attacks"
    fail_severity = Severity.HIGH
    pass_message = "ML models properly secured against adversarial attacks"
    fail_message = "Implement adversarial training, input validation, and model monitoring"

    ATTEMPTS = [
        Attempt(description, ML_TEST_PATH, body, hit=truthy("attackSuccessful", "modelCompromised"))
        for description, body in [
            ("Model Poisoning Attack", {
                "attack_type": "DATA_POISONING",
                "poisoned_samples": 1000,
                "target_behavior": "APPROVE_FRAUDULENT_TRADES",
            }),
            ("Adversarial Example Generation", {
                "attack_type": "ADVERSARIAL_EXAMPLES",
                "method": "FGSM",
                "epsilon": 0.1,
                "target_model": "fraud_detection",
            }),
            ("Model Extraction Attack", {
                "attack_type": "MODEL_EXTRACTION",
                "query_budget": 10000,
                "target_model": "price_prediction",
            }),
            ("Membership Inference Attack", {
                "attack_type": "MEMBERSHIP_INFERENCE",
                "target_records": ["user_123", "user_456"],
                "confidence_threshold": 0.9,
            }),
        ]
    ]


class SupplyChainProbe(AttemptProbe):
    name = "Supply Chain Attack Vectors"
    category = CATEGORY
    description = "Submits a poisoned dependency, a tampered build and a compromised CDN for assessment"
    fail_severity = Severity.CRITICAL
    pass_message = "Supply chain security properly implemented"
    fail_message = (
        "Implement comprehensive supply chain security including dependency scanning "
        "and build attestation"
    )

    ATTEMPTS = [
        Attempt("Dependency Confusion", "/v1/security/dependency-scan", {
            "dependencies": [{"name": "internal-trading-lib", "version": "99.0.0", "registry": "public"}],
        }, hit=lambda data: dig(data, "threatsDetected") == 0),
        Attempt("Build Pipeline Tampering", "/v1/security/build-integrity", {
            "buildId": "build_12345",
            "artifactHash": "TAMPERED_HASH",
            "signature": "INVALID_SIGNATURE",
        }, hit=flag("buildTrusted")),
        Attempt("Compromised Infrastructure", "/v1/security/infrastructure-trust", {
            "component": "cdn",
            "integrityCheck": "FAILED",
            "unexpectedScripts": ["https://malicious-cdn.example/miner.js"],
        }, hit=missing("compromiseDetected")),
    ]


class QuantumCryptoProbe(AttemptProbe):
    name = "Quantum-Ready Cryptographic Attacks"
    category = CATEGORY
    description = "Asks for the target's exposure to Shor and Grover style attacks"
    fail_severity = Severity.MEDIUM
    pass_message = "Quantum-resistant cryptography properly implemented"
    fail_message = "Begin migration to post-quantum cryptographic algorithms"

    ATTEMPTS = [
        Attempt("Quantum Vulnerability Assessment", "/v1/crypto/quantum-assessment", {
            "algorithms": ["RSA-2048", "ECDSA-P256", "AES-128"],
        }, hit=above("quantumVulnerableAlgorithms")),
        Attempt("Shor's Algorithm Simulation", "/v1/crypto/shors-simulation", {
            "targetKeySize": 2048, "qubits": 4096,
        }, hit=above("algorithmsBreakable")),
        Attempt("Grover's Algorithm Simulation", "/v1/crypto/grovers-simulation", {
            "targetAlgorithm": "AES-128",
        }, hit=flag("securityReduced")),
    ]


class EmergingProtocolProbe(AttemptProbe):
    name = "Emerging Protocol Attacks"
    category = CATEGORY
    description = "Checks HTTP/3, WebAssembly and GraphQL surfaces"
    fail_severity = Severity.MEDIUM
    pass_message = "Emerging protocols properly secured"
    fail_message = "Implement security controls for emerging protocols and technologies"

    ATTEMPTS = [
        Attempt("HTTP/3 Protocol Attacks", "/v1/protocols/http3-test", {
            "attacks": ["0RTT_REPLAY", "CONNECTION_MIGRATION_ABUSE", "QPACK_BOMB"],
        }, hit=above("vulnerabilitiesFound")),
        Attempt("WebAssembly Security", "/v1/wasm/security-scan", {
            "module": "AGFzbQEAAAA=",
            "checks": ["MEMORY_SAFETY", "SANDBOX_ESCAPE"],
        }, hit=above("securityViolations")),
        Attempt("GraphQL Introspection", "/v1/graphql", {
            "query": "query IntrospectionQuery { __schema { types { name fields { name } } } }",
        }, hit=truthy("data.__schema")),
    ]
