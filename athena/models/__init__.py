"""
Package initialization file for ATHENA models.

Re-exports the enumerations from enums.py and the Pydantic schemas from
schemas.py so other modules can import them from athena.models directly.

Usage:
    from athena.models import (
        MetricSnapshot,
        GateStatus,
        OutcomeRecord,
        RecommendationType,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from athena.models.enums import (
    # Gate levels
    ImpressionLevel,
    ConversionLevel,
    GateName,
    # Recommendations
    RecommendationType,
    RecommendationSource,
    RecommendationStatus,
    ConfidenceLevel,
    OutcomeVerdict,
    # Learning and privacy
    SharingState,
    GateDecisionType,
    PatternSource,
)

# =============================================================================
# Schemas
# =============================================================================

from athena.models.schemas import (
    # Configuration
    GateThresholds,
    SignificanceFilter,
    # Gate evaluation
    MetricSnapshot,
    AgeGate,
    ImpressionsGate,
    ConversionsGate,
    IosTrafficGate,
    ModeledConversionsGate,
    AttributionMismatchGate,
    SpendGate,
    GateStatus,
    GateAuditEntry,
    # Outcomes and patterns
    OutcomeRecord,
    AccountPattern,
    CrossAccountPattern,
    PatternInsight,
    PeriodMetrics,
    OutcomeMeasurement,
    # Monthly learnings
    YearMonth,
    MonthlySummary,
    # Privacy
    PrivacySettings,
    # Recommendations
    RecommendationDraft,
    RecommendationValidation,
    RecommendationTemplate,
    RankedRecommendation,
)


__all__ = [
    # Enums
    'ImpressionLevel',
    'ConversionLevel',
    'GateName',
    'RecommendationType',
    'RecommendationSource',
    'RecommendationStatus',
    'ConfidenceLevel',
    'OutcomeVerdict',
    'SharingState',
    'GateDecisionType',
    'PatternSource',
    # Schemas
    'GateThresholds',
    'SignificanceFilter',
    'MetricSnapshot',
    'AgeGate',
    'ImpressionsGate',
    'ConversionsGate',
    'IosTrafficGate',
    'ModeledConversionsGate',
    'AttributionMismatchGate',
    'SpendGate',
    'GateStatus',
    'GateAuditEntry',
    'OutcomeRecord',
    'AccountPattern',
    'CrossAccountPattern',
    'PatternInsight',
    'PeriodMetrics',
    'OutcomeMeasurement',
    'YearMonth',
    'MonthlySummary',
    'PrivacySettings',
    'RecommendationDraft',
    'RecommendationValidation',
    'RecommendationTemplate',
    'RankedRecommendation',
]
