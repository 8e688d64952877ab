"""
ATHENA Services Module

Services:
- gates: Confidence gate evaluation (pure)
- audit: Gate decision audit log
- specificity: Recommendation specificity checks and templates (pure)
- outcomes: Before/after outcome measurement (pure)
- account_patterns: Per-account pattern aggregation and ranking (pure)
- monthly_summary: Monthly summary builder (pure)
- cross_account: Cohort aggregation and blending (pure)
- privacy: Process-wide privacy gate
- repository: asyncpg-backed data access
- learning_pipeline: Async orchestration of repository and core

The pure services take every input as an argument (including `now`) and
never perform I/O.
"""

# =============================================================================
# Gate Evaluation
# =============================================================================
from athena.services.gates import (
    GATE_MESSAGE_ORDER,
    evaluate_gates,
    evaluate_missing_snapshot,
    get_gate_status_summary,
    get_confidence_label,
)
from athena.services.audit import log_gate_decision, format_audit_trail

# =============================================================================
# Specificity
# =============================================================================
from athena.services.specificity import (
    RECOMMENDATION_TEMPLATES,
    classify,
    is_specific,
    validate_recommendation,
    build_recommendation,
    filter_trackable_outcomes,
)

# =============================================================================
# Outcomes and Patterns
# =============================================================================
from athena.services.outcomes import measure_outcome, resolve_outcome
from athena.services.account_patterns import (
    SUCCESS_NOISE_FLOOR_PCT,
    aggregate_account_patterns,
    rank_recommendations,
    validate_account_history,
)
from athena.services.monthly_summary import InsightTemplate, build_monthly_summary
from athena.services.cross_account import (
    MIN_COHORT_FLOOR,
    aggregate_cross_account,
    blend_with_cross_account,
)
from athena.services.privacy import PrivacyGate, get_privacy_gate


__all__ = [
    # Gates
    'GATE_MESSAGE_ORDER',
    'evaluate_gates',
    'evaluate_missing_snapshot',
    'get_gate_status_summary',
    'get_confidence_label',
    'log_gate_decision',
    'format_audit_trail',
    # Specificity
    'RECOMMENDATION_TEMPLATES',
    'classify',
    'is_specific',
    'validate_recommendation',
    'build_recommendation',
    'filter_trackable_outcomes',
    # Outcomes and patterns
    'measure_outcome',
    'resolve_outcome',
    'SUCCESS_NOISE_FLOOR_PCT',
    'aggregate_account_patterns',
    'rank_recommendations',
    'validate_account_history',
    'InsightTemplate',
    'build_monthly_summary',
    'MIN_COHORT_FLOOR',
    'aggregate_cross_account',
    'blend_with_cross_account',
    # Privacy
    'PrivacyGate',
    'get_privacy_gate',
]
