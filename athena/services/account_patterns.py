"""
Account Pattern Aggregator Service

Turns one account's outcome history into per-recommendation-type patterns:
how often each kind of change worked for this account, by how much, and how
recently it was last measured.

Rules:
- Only resolved outcomes count (followed, with resolved_at and cpa_delta_pct)
- An outcome is a success when cpa_delta_pct >= SUCCESS_NOISE_FLOOR_PCT (2.0)
- success_rate = 100 * successes / sample_size
- avg_cpa_improvement = arithmetic mean of the signed CPA deltas
- recency_days = whole days between `now` and the latest resolved_at
- Types with no resolved outcomes produce no pattern

The aggregator never applies the significance filter. Consumers decide what
is actionable with SignificanceFilter.is_actionable(), as rank_recommendations
does here.

Aggregation is a pure function of (outcomes, now): the caller supplies `now`
so results are reproducible.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from athena.core.config import get_settings
from athena.core.errors import InvalidInputError
from athena.models.enums import ConfidenceLevel, RecommendationType
from athena.models.schemas import (
    AccountPattern,
    OutcomeRecord,
    RankedRecommendation,
    RecommendationDraft,
    SignificanceFilter,
)


# =============================================================================
# Module Constants
# =============================================================================

# CPA improvement (percent) an outcome must reach to count as a success.
# Smaller deltas are treated as noise.
SUCCESS_NOISE_FLOOR_PCT: float = 2.0

# Account success rates that move a recommendation's confidence one step
BOOST_SUCCESS_RATE: float = 60.0
DEMOTE_SUCCESS_RATE: float = 30.0

_CONFIDENCE_ORDER: List[ConfidenceLevel] = [
    ConfidenceLevel.LOW,
    ConfidenceLevel.MEDIUM,
    ConfidenceLevel.HIGH,
]

logger = logging.getLogger(__name__)


# =============================================================================
# Aggregation
# =============================================================================


def validate_account_history(outcomes: List[OutcomeRecord]) -> None:
    """
    Reject a history that cannot be aggregated as one account's.

    Raises:
        InvalidInputError: If the outcomes span more than one account or mix
            naive and timezone-aware timestamps.
    """
    account_ids = {outcome.account_id for outcome in outcomes}
    if len(account_ids) > 1:
        raise InvalidInputError(
            f"Outcomes must belong to a single account, got {len(account_ids)}: "
            f"{sorted(account_ids)}"
        )

    kinds = {outcome.created_at.tzinfo is None for outcome in outcomes}
    if len(kinds) > 1:
        raise InvalidInputError("Outcomes mix naive and timezone-aware timestamps")


def _recency_days(now: datetime, last_resolved_at: datetime) -> int:
    if (now.tzinfo is None) != (last_resolved_at.tzinfo is None):
        raise InvalidInputError("`now` and resolved_at must both be naive or both be timezone-aware")
    return max(0, (now - last_resolved_at).days)


def aggregate_account_patterns(
    outcomes: List[OutcomeRecord],
    now: datetime,
    noise_floor_pct: Optional[float] = None,
) -> List[AccountPattern]:
    """
    Aggregate one account's outcomes into per-type patterns.

    Args:
        outcomes: Outcome records, all belonging to the same account.
        now: Reference time for recency_days.
        noise_floor_pct: Success threshold on cpa_delta_pct; defaults to the
            configured success_noise_floor_pct (2.0).

    Returns:
        One AccountPattern per type with at least one resolved outcome,
        sorted by recommendation type.

    Raises:
        InvalidInputError: If the outcomes span more than one account or mix
            naive and timezone-aware timestamps.
    """
    if noise_floor_pct is None:
        noise_floor_pct = get_settings().success_noise_floor_pct

    validate_account_history(outcomes)

    resolved = [outcome for outcome in outcomes if outcome.is_resolved]
    if not resolved:
        return []

    account_id = resolved[0].account_id

    df = pd.DataFrame([
        {
            'recommendation_type': outcome.recommendation_type.value,
            'cpa_delta_pct': outcome.cpa_delta_pct,
            'success': outcome.cpa_delta_pct >= noise_floor_pct,
        }
        for outcome in resolved
    ])

    grouped = df.groupby('recommendation_type', sort=True).agg(
        sample_size=('cpa_delta_pct', 'size'),
        successes=('success', 'sum'),
        avg_cpa_improvement=('cpa_delta_pct', 'mean'),
    )

    # Timestamps stay as Python datetimes; mixed offsets would otherwise
    # be coerced by pandas
    last_resolved: Dict[str, datetime] = {}
    for outcome in resolved:
        key = outcome.recommendation_type.value
        if key not in last_resolved or outcome.resolved_at > last_resolved[key]:
            last_resolved[key] = outcome.resolved_at

    patterns = []
    for rec_type, row in grouped.iterrows():
        sample_size = int(row['sample_size'])
        successes = int(row['successes'])
        patterns.append(AccountPattern(
            account_id=account_id,
            recommendation_type=RecommendationType(rec_type),
            sample_size=sample_size,
            successes=successes,
            success_rate=100.0 * successes / sample_size,
            avg_cpa_improvement=float(row['avg_cpa_improvement']),
            recency_days=_recency_days(now, last_resolved[rec_type]),
            last_resolved_at=last_resolved[rec_type],
        ))

    logger.debug(
        f"Aggregated {len(resolved)} resolved outcomes into {len(patterns)} patterns "
        f"for account {account_id}"
    )

    return patterns


# =============================================================================
# Recommendation Ranking
# =============================================================================


def _shift_confidence(level: ConfidenceLevel, steps: int) -> ConfidenceLevel:
    index = _CONFIDENCE_ORDER.index(level) + steps
    index = max(0, min(index, len(_CONFIDENCE_ORDER) - 1))
    return _CONFIDENCE_ORDER[index]


def rank_recommendations(
    drafts: List[RecommendationDraft],
    patterns: List[AccountPattern],
    significance: Optional[SignificanceFilter] = None,
) -> List[RankedRecommendation]:
    """
    Adjust recommendation confidence with the account's own history.

    A draft whose type has an actionable pattern moves up one confidence
    step when that pattern's success rate is at least 60%, and down one step
    below 30%. Patterns failing the significance filter leave the draft
    unchanged.

    Returns:
        Ranked recommendations sorted by adjusted confidence (high first),
        then by account success rate.
    """
    if significance is None:
        significance = SignificanceFilter.from_settings()

    pattern_map = {pattern.recommendation_type: pattern for pattern in patterns}
    ranked = []

    for draft in drafts:
        confidence = draft.confidence or ConfidenceLevel.MEDIUM
        pattern = pattern_map.get(draft.recommendation_type)
        boost_reason = None
        demote_reason = None

        if pattern is not None and significance.is_actionable(pattern):
            if pattern.success_rate >= BOOST_SUCCESS_RATE:
                confidence = _shift_confidence(confidence, 1)
                boost_reason = (
                    f"This type has {pattern.success_rate:.0f}% success rate in your account"
                )
            elif pattern.success_rate < DEMOTE_SUCCESS_RATE:
                confidence = _shift_confidence(confidence, -1)
                demote_reason = (
                    f"This type has only {pattern.success_rate:.0f}% success rate in your account"
                )

        ranked.append(RankedRecommendation(
            recommendation=draft,
            adjusted_confidence=confidence,
            account_success_rate=pattern.success_rate if pattern else None,
            boost_reason=boost_reason,
            demote_reason=demote_reason,
        ))

    ranked.sort(key=lambda r: (
        -_CONFIDENCE_ORDER.index(r.adjusted_confidence),
        -(r.account_success_rate or 0.0),
    ))

    return ranked
