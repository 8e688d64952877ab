"""
Outcome Measurement Service

Measures what happened after a recommendation was followed by comparing a
before window with an after window of the same length, and folds the result
into the OutcomeRecord.

CPA change is signed so that positive means improvement:

    cpa_change_pct = (before_cpa - after_cpa) / before_cpa * 100

ROAS change is signed the natural way (positive = ROAS went up).

Verdicts use a 10% threshold on the CPA change. This is separate from the
2% noise floor the account aggregator uses to count a success: the verdict
is a user-facing label, while the aggregator works from the raw delta.

Outcomes with fewer than 10 post-change conversions are insufficient_data and
stay unresolved, so they never reach pattern aggregation.
"""

import logging
from datetime import datetime
from typing import Optional

from athena.models.enums import ConversionLevel, OutcomeVerdict, RecommendationStatus
from athena.models.schemas import (
    GateThresholds,
    OutcomeMeasurement,
    OutcomeRecord,
    PeriodMetrics,
)
from athena.services.gates import classify_conversions


# =============================================================================
# Module Constants
# =============================================================================

# |cpa_change_pct| above this is labeled improved/declined, otherwise neutral
VERDICT_THRESHOLD_PCT: float = 10.0

logger = logging.getLogger(__name__)


def _cpa(period: PeriodMetrics) -> Optional[float]:
    if period.conversions <= 0:
        return None
    return period.spend / period.conversions


def _roas(period: PeriodMetrics) -> Optional[float]:
    if period.spend <= 0:
        return None
    return period.revenue / period.spend


def measure_outcome(
    before: PeriodMetrics,
    after: PeriodMetrics,
    thresholds: Optional[GateThresholds] = None,
) -> OutcomeMeasurement:
    """
    Compare before/after windows and produce a verdict.

    Args:
        before: Totals for the window before the change.
        after: Totals for the window after the change.
        thresholds: Conversion breakpoints; the medium floor (10) is the
            minimum after-window conversions needed for a verdict.

    Returns:
        OutcomeMeasurement. When the after window is too thin, the verdict is
        INSUFFICIENT_DATA with no deltas.
    """
    if thresholds is None:
        thresholds = GateThresholds.from_settings()

    if after.conversions < thresholds.conversions_medium:
        return OutcomeMeasurement(
            verdict=OutcomeVerdict.INSUFFICIENT_DATA,
            conversions=after.conversions,
            confidence=ConversionLevel.INSUFFICIENT,
        )

    before_cpa = _cpa(before)
    after_cpa = _cpa(after)
    cpa_change = None
    if before_cpa:
        cpa_change = (before_cpa - after_cpa) / before_cpa * 100

    before_roas = _roas(before)
    after_roas = _roas(after)
    roas_change = None
    if before_roas and after_roas is not None:
        roas_change = (after_roas - before_roas) / before_roas * 100

    verdict = OutcomeVerdict.NEUTRAL
    if cpa_change is not None and cpa_change > VERDICT_THRESHOLD_PCT:
        verdict = OutcomeVerdict.IMPROVED
    elif cpa_change is not None and cpa_change < -VERDICT_THRESHOLD_PCT:
        verdict = OutcomeVerdict.DECLINED

    confidence, _ = classify_conversions(after.conversions, thresholds)

    return OutcomeMeasurement(
        verdict=verdict,
        cpa_change_pct=cpa_change,
        roas_change_pct=roas_change,
        conversions=after.conversions,
        confidence=confidence,
    )


def mark_followed(record: OutcomeRecord, followed_at: datetime) -> OutcomeRecord:
    """Return a copy of the record marked as followed."""
    return OutcomeRecord.from_payload({
        **record.model_dump(),
        'status': RecommendationStatus.FOLLOWED,
        'followed_at': followed_at,
    })


def mark_ignored(record: OutcomeRecord) -> OutcomeRecord:
    """Return a copy of the record marked as ignored."""
    return OutcomeRecord.from_payload({
        **record.model_dump(),
        'status': RecommendationStatus.IGNORED,
    })


def resolve_outcome(
    record: OutcomeRecord,
    measurement: OutcomeMeasurement,
    measured_at: datetime,
) -> OutcomeRecord:
    """
    Fold a measurement into an outcome record.

    Insufficient-data measurements, and measurements without a CPA change,
    only record the verdict; the record stays unresolved.

    Raises:
        InvalidInputError: If measured_at precedes the record's created_at.
    """
    if measurement.verdict == OutcomeVerdict.INSUFFICIENT_DATA or measurement.cpa_change_pct is None:
        logger.info(
            f"Outcome for {record.recommendation_id} left unresolved "
            f"(verdict={measurement.verdict.value}, conversions={measurement.conversions})"
        )
        return OutcomeRecord.from_payload({
            **record.model_dump(),
            'verdict': measurement.verdict,
        })

    return OutcomeRecord.from_payload({
        **record.model_dump(),
        'verdict': measurement.verdict,
        'cpa_delta_pct': measurement.cpa_change_pct,
        'roas_delta_pct': measurement.roas_change_pct,
        'resolved_at': measured_at,
    })
