"""
Phase 6 probes — ordering service, Byzantine faults, block validation,
finality and orderer load.
"""

from __future__ import annotations

from dexsentry.config import (
    BURST_CONCURRENCY,
    FLOOD_REQUESTS,
    FLOOD_TIMEOUT,
    LARGE_PAYLOAD_BYTES,
)
from dexsentry.models.records import ProbeResponse, Severity
from dexsentry.probes.base import Attempt, AttemptProbe, BaseProbe, all_of, flag, missing, truthy
from dexsentry.probes.burst import timed_burst

CATEGORY = "Consensus & Ordering"
SUBMIT_PATH = "/v1/transactions/submit"
CHANNEL_CREATE_PATH = "/v1/channels/create"

_consensus_broken = all_of(missing("error"), flag("consensus_broken"))


class OrderingServiceProbe(AttemptProbe):
    name = "Ordering Service Manipulation"
    category = CATEGORY
    description = "Asks the orderer to reorder, force-create and fork blocks"
    fail_severity = Severity.CRITICAL
    pass_message = "Ordering service properly secured"
    fail_message = "Implement strict ordering service access controls and consensus validation"

    ATTEMPTS = [
        Attempt("Transaction Order Manipulation", SUBMIT_PATH, {
            "transaction": {
                "chaincode": "trading",
                "function": "transfer",
                "args": ["user1", "attacker", "1000"],
                "nonce": "12345",
            },
            "orderingHint": "PRIORITY_HIGH",
            "sequenceNumber": 999999,
        }, hit=truthy("accepted")),
        Attempt("Block Creation Bypass", "/v1/orderer/blocks/create", {
            "channelId": "trading-channel",
            "transactions": [{"txId": "malicious-tx", "payload": "UNAUTHORIZED_TRANSACTION"}],
            "previousBlockHash": "0x123456789abcdef",
            "forceCreate": True,
        }),
        Attempt("Consensus Protocol Disruption", "/v1/consensus/disrupt", {
            "action": "fork_chain",
            "alternativeBlocks": [
                {"blockNumber": 12345, "transactions": ["MALICIOUS_TX_1", "MALICIOUS_TX_2"]},
            ],
        }),
    ]


class ByzantineFaultProbe(AttemptProbe):
    name = "Byzantine Fault Tolerance"
    category = CATEGORY
    description = "Requests Byzantine scenarios and checks whether consensus reports itself broken"
    fail_severity = Severity.CRITICAL
    pass_message = "Byzantine fault tolerance working correctly"
    fail_message = "Strengthen consensus mechanism against Byzantine failures"

    PATH = "/v1/consensus/byzantine-test"
    ATTEMPTS = [
        Attempt("Malicious Orderer Simulation", PATH, {
            "ordererAction": "MALICIOUS_BEHAVIOR",
            "scenarios": ["double_spend_attempt", "block_withholding", "invalid_block_proposal"],
        }, hit=_consensus_broken),
        Attempt("Network Partition Attack", PATH, {
            "action": "network_partition",
            "partitionedNodes": ["orderer1", "orderer2"],
            "isolatedNodes": ["orderer3"],
            "duration": 30000,
        }, hit=_consensus_broken),
        Attempt("Consensus Delay Attack", PATH, {
            "action": "consensus_delay",
            "delayType": "selective",
            "targetTransactions": ["high_value_transfer"],
            "delayDuration": 60000,
        }, hit=_consensus_broken),
        Attempt("Fork Attack Simulation", PATH, {
            "action": "create_fork",
            "forkPoint": "block_12345",
            "alternativeChain": [{"blockHeight": 12346, "maliciousTransactions": True}],
        }, hit=_consensus_broken),
    ]


class BlockValidationProbe(AttemptProbe):
    name = "Block Validation Security"
    category = CATEGORY
    description = "Submits malformed and tampered blocks for validation"
    fail_severity = Severity.HIGH
    pass_message = "Block validation working correctly"
    fail_message = "Strengthen block validation and integrity checks"

    ATTEMPTS = [
        Attempt("Invalid Block Structure", "/v1/blocks/validate", {
            "block": {
                "header": {"number": -1, "previousHash": "INVALID_HASH", "dataHash": None},
                "data": {"transactions": ["MALFORMED_TX"]},
            },
        }, hit=flag("valid")),
        Attempt("Merkle Tree Tampering", "/v1/blocks/validate", {
            "block": {
                "header": {"number": 12345, "dataHash": "TAMPERED_MERKLE_ROOT"},
                "data": {"transactions": ["valid_tx_1", "INJECTED_MALICIOUS_TX", "valid_tx_2"]},
            },
        }, hit=flag("valid")),
        Attempt("Genesis Block Manipulation", CHANNEL_CREATE_PATH, {
            "channelName": "malicious-channel",
            "genesisBlock": {
                "header": {"number": 0},
                "data": {"config": {
                    "admins": ["AttackerMSP"],
                    "policies": {"admins": "AttackerMSP.admin"},
                }},
            },
        }),
    ]


class FinalityProbe(AttemptProbe):
    name = "Transaction Finality Attacks"
    category = CATEGORY
    description = "Tries to roll back, force-finalise and reorganise committed transactions"
    fail_severity = Severity.CRITICAL
    pass_message = "Transaction finality properly enforced"
    fail_message = "Implement strict finality guarantees and prevent rollback attacks"

    PATH = "/v1/finality/test"
    ATTEMPTS = [
        Attempt("Transaction Rollback Attempt", PATH, {
            "action": "rollback_transaction",
            "txId": "high_value_transfer_123",
            "rollbackReason": "administrative_override",
            "newBlockHeight": 12300,
        }, hit=flag("success")),
        Attempt("Finality Bypass", PATH, {
            "action": "bypass_finality",
            "transactions": [{"txId": "unconfirmed_tx_1", "status": "FORCE_FINAL"}],
        }, hit=flag("success")),
        Attempt("Chain Reorganization Attack", PATH, {
            "action": "chain_reorg",
            "fromBlock": 12345,
            "toBlock": 12350,
            "alternativeChain": ["alternative_block_12346", "alternative_block_12347"],
        }, hit=flag("success")),
        Attempt("Confirmation Depth Manipulation", PATH, {
            "action": "modify_confirmation_depth",
            "transactionId": "target_tx_123",
            "fakeConfirmations": 100,
            "actualConfirmations": 1,
        }, hit=flag("success")),
    ]


class OrdererDosProbe(BaseProbe):
    """Flood the orderer with submissions, one oversized transaction and
    a burst of channel creations."""

    name = "Orderer Performance & DoS"
    category = CATEGORY
    description = "Floods transaction submission and channel creation"
    fail_severity = Severity.HIGH
    pass_message = "Orderer throttles floods and oversized transactions"
    fail_message = "Rate-limit transaction submission and cap transaction size at the orderer"

    # Share of a flood that may succeed before the orderer counts as unthrottled
    FLOOD_ACCEPT_RATIO = 0.8
    CHANNEL_ACCEPT_RATIO = 0.1

    def __init__(
        self,
        flood: int = FLOOD_REQUESTS,
        channels: int = FLOOD_REQUESTS // 5,
        payload_bytes: int = LARGE_PAYLOAD_BYTES,
        concurrency: int = BURST_CONCURRENCY,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.flood = flood
        self.channels = channels
        self.payload_bytes = payload_bytes
        self.concurrency = concurrency

    async def probe(self, client):
        async def _submit(i: int) -> ProbeResponse:
            return await self.post(client, SUBMIT_PATH, {
                "transaction": {
                    "chaincode": "trading",
                    "function": "noop",
                    "args": [f"flood_{i}"],
                    "nonce": f"flood_nonce_{i}",
                },
            }, timeout=FLOOD_TIMEOUT)

        async def _create_channel(i: int) -> ProbeResponse:
            return await self.post(client, CHANNEL_CREATE_PATH, {
                "channelName": f"dos-channel-{i}",
                "organizations": ["GalaChainMSP"],
            })

        cases = []
        flood = await timed_burst(self.flood, _submit, self.concurrency)
        cases.append(self.burst_case(
            "Transaction Flood Attack", flood,
            vulnerable=flood.successful > self.flood * self.FLOOD_ACCEPT_RATIO,
        ))
        await self.pause()

        large = await self.post(client, SUBMIT_PATH, {
            "transaction": {"chaincode": "trading", "function": "store", "args": ["X" * self.payload_bytes]},
        })
        cases.append(self.case(
            f"Large Transaction DoS ({self.payload_bytes} bytes)", large,
            vulnerable=large.status_code == 200,
        ))
        await self.pause()

        channels = await timed_burst(self.channels, _create_channel, self.concurrency)
        cases.append(self.burst_case(
            "Orderer Resource Exhaustion", channels,
            vulnerable=channels.successful > self.channels * self.CHANNEL_ACCEPT_RATIO,
        ))

        if all(c["status"] == 0 for c in cases):
            return self.transport_record("every submission failed")
        metrics = {
            "floodRequestsPerSecond": flood.requests_per_second,
            "floodDurationMs": flood.duration_ms,
        }
        return self.finish(cases, metrics=metrics)
