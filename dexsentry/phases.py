"""
Phase registry — which probes run together and under which label.

The label is what lands in ``PhaseResult.phase`` and, through it, in the
result file name, so numbered phases keep the ``Phase N - Name`` shape.
"""

from dataclasses import dataclass

from dexsentry.errors import UnknownPhaseError
from dexsentry.probes.access import AdminEndpointProbe, ChaincodeAccessProbe, PoolCreationProbe
from dexsentry.probes.attacks import (
    ConnectionFloodProbe,
    FeeTierArbitrageProbe,
    OracleConsistencyProbe,
    PayloadHandlingProbe,
    ReentrancyProbe,
)
from dexsentry.probes.bridge import (
    BridgeConfigEnumerationProbe,
    BridgeInputValidationProbe,
    BridgeStatusDisclosureProbe,
)
from dexsentry.probes.compliance import (
    AmlKycProbe,
    DataRetentionProbe,
    JurisdictionProbe,
    LicenseProbe,
    MarketManipulationProbe,
    RegulatoryReportingProbe,
)
from dexsentry.probes.consensus import (
    BlockValidationProbe,
    ByzantineFaultProbe,
    FinalityProbe,
    OrdererDosProbe,
    OrderingServiceProbe,
)
from dexsentry.probes.endpoints import (
    BundleSubmissionProbe,
    HistoricalDataProbe,
    TokenMetadataProbe,
)
from dexsentry.probes.extended import (
    LiquidityEstimateProbe,
    PriceOracleProbe,
    TransactionEnumerationProbe,
)
from dexsentry.probes.flash_loan import (
    LiquidityExhaustionProbe,
    OraclePriceManipulationProbe,
    PoolManipulationProbe,
)
from dexsentry.probes.infrastructure import LiquidityDrainProbe, PrecisionProbe, RateLimitProbe
from dexsentry.probes.mev import BackrunningProbe, JitLiquidityProbe, SandwichAttackProbe
from dexsentry.probes.network import (
    CertificateRevocationProbe,
    ChannelAccessProbe,
    MspIdentityProbe,
    OrgPrivilegeProbe,
    PeerNetworkProbe,
)
from dexsentry.probes.performance import (
    ConcurrentLoadProbe,
    DegradationProbe,
    ResponseTimeBaselineProbe,
)
from dexsentry.probes.privacy import (
    AnonymizationProbe,
    ChannelIsolationProbe,
    KeyManagementProbe,
    MetadataLeakageProbe,
    PrivateDataProbe,
    ZeroKnowledgeProbe,
)
from dexsentry.probes.time_based import (
    DeadlineBypassProbe,
    ReplayProtectionProbe,
    TimestampManipulationProbe,
)
from dexsentry.probes.validation import (
    ErrorLeakageProbe,
    InputValidationProbe,
    QuoteConsistencyProbe,
    TokenValidationProbe,
)
from dexsentry.probes.zero_day import (
    AdversarialMlProbe,
    AptSimulationProbe,
    EmergingProtocolProbe,
    NovelPatternProbe,
    QuantumCryptoProbe,
    SupplyChainProbe,
)


@dataclass(frozen=True)
class Phase:
    key: str
    label: str
    probes: tuple

    def describe(self) -> list[str]:
        return [p.name for p in self.probes]


PHASES = {
    "1": Phase("1", "Phase 1 - Critical Infrastructure", (
        RateLimitProbe, LiquidityDrainProbe, PrecisionProbe,
    )),
    "2": Phase("2", "Phase 2 - Input & Token Validation", (
        InputValidationProbe, TokenValidationProbe, ErrorLeakageProbe, QuoteConsistencyProbe,
    )),
    "3": Phase("3", "Phase 3 - Access Control", (
        PoolCreationProbe, ChaincodeAccessProbe, AdminEndpointProbe,
    )),
    "4a": Phase("4a", "Phase 4A - Time-Based Attacks", (
        TimestampManipulationProbe, DeadlineBypassProbe, ReplayProtectionProbe,
    )),
    "4b": Phase("4b", "Phase 4B - Bridge Surface", (
        BridgeConfigEnumerationProbe, BridgeInputValidationProbe, BridgeStatusDisclosureProbe,
    )),
    "4c": Phase("4c", "Phase 4C - Performance", (
        ResponseTimeBaselineProbe, ConcurrentLoadProbe, DegradationProbe,
    )),
    "5": Phase("5", "Phase 5 - Permissioned Network", (
        MspIdentityProbe, ChannelAccessProbe, PeerNetworkProbe,
        OrgPrivilegeProbe, CertificateRevocationProbe,
    )),
    "6": Phase("6", "Phase 6 - Consensus & Ordering", (
        OrderingServiceProbe, ByzantineFaultProbe, BlockValidationProbe,
        FinalityProbe, OrdererDosProbe,
    )),
    "7": Phase("7", "Phase 7 - Privacy & Confidentiality", (
        PrivateDataProbe, ChannelIsolationProbe, KeyManagementProbe,
        AnonymizationProbe, ZeroKnowledgeProbe, MetadataLeakageProbe,
    )),
    "8": Phase("8", "Phase 8 - Compliance & Regulatory", (
        AmlKycProbe, JurisdictionProbe, RegulatoryReportingProbe,
        DataRetentionProbe, LicenseProbe, MarketManipulationProbe,
    )),
    "10": Phase("10", "Phase 10 - Zero-Day & APT", (
        NovelPatternProbe, AptSimulationProbe, AdversarialMlProbe,
        SupplyChainProbe, QuantumCryptoProbe, EmergingProtocolProbe,
    )),
    "mev": Phase("mev", "MEV Protection", (
        SandwichAttackProbe, JitLiquidityProbe, BackrunningProbe,
    )),
    "flash-loan": Phase("flash-loan", "Flash Loan Risks", (
        PoolManipulationProbe, OraclePriceManipulationProbe, LiquidityExhaustionProbe,
    )),
    "attacks": Phase("attacks", "Attack Simulation", (
        FeeTierArbitrageProbe, OracleConsistencyProbe, ConnectionFloodProbe,
        PayloadHandlingProbe, ReentrancyProbe,
    )),
    "extended": Phase("extended", "Extended Surface", (
        LiquidityEstimateProbe, TransactionEnumerationProbe, PriceOracleProbe,
    )),
    "endpoints": Phase("endpoints", "Advanced Endpoints", (
        TokenMetadataProbe, BundleSubmissionProbe, HistoricalDataProbe,
    )),
    "critical": Phase("critical", "Critical Tests Only", (RateLimitProbe,)),
}

# ``--all`` runs every numbered phase; the named suites and "critical"
# are run on request only
ALL_PHASES = ("1", "2", "3", "4a", "4b", "4c", "5", "6", "7", "8", "10")


def get_phase(key: str) -> Phase:
    phase = PHASES.get(key.lower())
    if phase is None:
        raise UnknownPhaseError(
            f"unknown phase {key!r} (choose from: {', '.join(PHASES)})"
        )
    return phase
