"""
Phase 5 probes — permissioned-network identity, channels, peers and
organisation roles.

Every probe here is a fixed list of forged requests; the target should
refuse all of them.
"""

from __future__ import annotations

from dexsentry.models.records import Severity
from dexsentry.probes.base import Attempt, AttemptProbe, missing

CATEGORY = "Permissioned Network"


class MspIdentityProbe(AttemptProbe):
    name = "MSP Identity Manipulation"
    category = CATEGORY
    description = "Presents invalid and impersonated MSP identities"
    fail_severity = Severity.CRITICAL
    pass_message = "MSP identity validation properly enforced"
    fail_message = "Strengthen MSP certificate validation and CA controls"

    ATTEMPTS = [
        Attempt("Invalid MSP Certificate", "/v1/identity/validate", {
            "certificate": "INVALID_CERT_DATA_" + "ab" * 64,
            "mspId": "GalaChainMSP",
        }),
        Attempt("MSP Impersonation", "/v1/chaincode/invoke", {
            "chaincodeName": "trading",
            "functionName": "adminFunction",
            "args": ["impersonation_test"],
        }, headers={"X-MSP-ID": "FakeAdminMSP", "X-Certificate": "FAKE_ADMIN_CERT"}),
        Attempt("Certificate Authority Bypass", "/v1/ca/register", {
            "enrollmentId": "malicious_user",
            "enrollmentSecret": "bypass_attempt",
            "role": "admin",
        }),
    ]


class ChannelAccessProbe(AttemptProbe):
    name = "Channel Access Control"
    category = CATEGORY
    description = "Joins, reconfigures and reads channels from an outside MSP"
    fail_severity = Severity.HIGH
    pass_message = "Channel access controls properly enforced"
    fail_message = "Implement strict channel access policies"

    ATTEMPTS = [
        Attempt("Unauthorized Channel Join", "/v1/channels/private-channel/join", {
            "peer": "malicious-peer", "mspId": "UnauthorizedMSP",
        }, hit=missing("error")),
        Attempt("Channel Configuration Tampering", "/v1/channels/trading-channel/config", {
            "configUpdate": {
                "readSet": [],
                "writeSet": [{"key": "Admins", "value": "malicious_admin"}],
            },
        }, hit=missing("error")),
        Attempt("Cross-Channel Data Access", "/v1/channels/private-channel/query", {
            "chaincode": "confidential", "function": "getAllData",
        }, hit=missing("error")),
        Attempt("Channel Event Eavesdropping", "/v1/channels/trading-channel/events/subscribe", {
            "eventType": "ALL", "unauthorized": True,
        }, hit=missing("error")),
    ]


class PeerNetworkProbe(AttemptProbe):
    name = "Peer Network Security"
    category = CATEGORY
    description = "Registers a rogue peer, spoofs gossip and forges endorsements"
    fail_severity = Severity.CRITICAL
    pass_message = "Peer network security properly enforced"
    fail_message = "Implement strict peer validation and gossip protocol security"

    ATTEMPTS = [
        Attempt("Malicious Peer Registration", "/v1/peers/register", {
            "peerId": "malicious-peer",
            "endpoint": "malicious.peer.com:7051",
            "mspId": "FakeMSP",
            "tlsCert": "FAKE_TLS_CERT",
        }),
        Attempt("Peer Gossip Protocol Manipulation", "/v1/gossip/broadcast", {
            "message": "MALICIOUS_GOSSIP_MESSAGE",
            "type": "BLOCK_VALIDATION",
            "spoofedFrom": "trusted-peer",
        }),
        Attempt("Endorsement Policy Bypass", "/v1/transactions/submit", {
            "proposal": {
                "chaincode": "trading",
                "function": "transfer",
                "args": ["user1", "attacker", "1000000"],
            },
            "endorsements": [
                {"peer": "fake-peer", "signature": "FAKE_SIGNATURE", "mspId": "FakeEndorserMSP"},
            ],
        }),
    ]


class OrgPrivilegeProbe(AttemptProbe):
    name = "Organization Privilege Escalation"
    category = CATEGORY
    description = "Requests organisation-level admin operations without admin rights"
    fail_severity = Severity.CRITICAL
    pass_message = "Organization privileges properly controlled"
    fail_message = "Implement strict role-based access control for organizational operations"

    PATH = "/v1/admin/operations"
    ATTEMPTS = [
        Attempt("Admin Role Assumption", PATH, {
            "operation": "createChannel",
            "channelName": "unauthorized-channel",
            "organizations": ["MaliciousOrg"],
            "adminOverride": True,
        }, hit=missing("error")),
        Attempt("Policy Modification Attack", PATH, {
            "operation": "updateChannelConfig",
            "channelName": "trading-channel",
            "policy": {
                "admins": ["AttackerMSP"],
                "writers": ["AttackerMSP"],
                "readers": ["AttackerMSP"],
            },
        }, hit=missing("error")),
        Attempt("Consensus Manipulation", PATH, {
            "operation": "orderingService",
            "action": "addOrderer",
            "orderer": "malicious-orderer.com:7050",
            "organization": "AttackerOrg",
        }, hit=missing("error")),
        Attempt("Certificate Authority Takeover", PATH, {
            "operation": "ca-admin",
            "action": "revoke-all",
            "targetMSP": "GalaChainMSP",
            "reason": "administrative",
        }, hit=missing("error")),
    ]


class CertificateRevocationProbe(AttemptProbe):
    name = "Identity Revocation and CRL"
    category = CATEGORY
    description = "Uses revoked and expired certificates and asks to skip the CRL"
    fail_severity = Severity.HIGH
    pass_message = "Certificate revocation properly enforced"
    fail_message = "Implement strict CRL checking and certificate expiration validation"

    ATTEMPTS = [
        Attempt("Revoked Certificate Usage", "/v1/chaincode/invoke", {
            "chaincodeName": "trading",
            "functionName": "getBalance",
            "args": ["user1"],
        }, headers={"X-Certificate": "REVOKED_CERT_DATA"}),
        Attempt("CRL Bypass", "/v1/identity/validate", {
            "certificate": "REVOKED_CERT_DATA",
            "mspId": "GalaChainMSP",
            "skipCRLCheck": True,
        }),
        Attempt("Expired Certificate", "/v1/transactions/submit", {
            "transaction": {"chaincode": "trading", "function": "transfer", "args": ["user1", "user2", "1"]},
            "certificateExpiry": "2020-01-01",
        }),
    ]
