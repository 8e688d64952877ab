"""
Monthly Summary Builder Service

Summarizes one account's recommendation activity for a calendar month:
how many recommendations were generated, followed and ignored, how many
outcomes were measured, how often they succeeded, which types worked best,
and a short list of insights rendered from fixed templates.

Month membership is decided by created_at. Generated, followed and ignored
counts cover every recommendation created in the month. Measured outcomes,
success rate, average CPA improvement and top types cover only resolved
outcomes whose text passes the specificity check; rates are None when none
did, and unresolved outcomes never count as failures.

Top performing types are account patterns computed over the month's outcomes
with recency measured from the first instant of the following month, so the
summary for a closed month never changes.
"""

import logging
from enum import Enum
from typing import List, Optional, Union

from athena.core.config import get_settings
from athena.models.enums import RecommendationStatus, RecommendationType
from athena.models.schemas import AccountPattern, MonthlySummary, OutcomeRecord, YearMonth
from athena.services.account_patterns import aggregate_account_patterns, validate_account_history
from athena.services.specificity import filter_trackable_outcomes


# =============================================================================
# Module Constants
# =============================================================================

TOP_TYPES_LIMIT: int = 3

LOW_FOLLOW_RATE_PCT: float = 30.0
HIGH_SUCCESS_RATE_PCT: float = 60.0
LOW_SUCCESS_RATE_PCT: float = 30.0
LOW_SUCCESS_MIN_MEASURED: int = 5
IMPROVED_COUNT_MIN: int = 5

logger = logging.getLogger(__name__)


class InsightTemplate(str, Enum):
    """
    Closed set of insight sentences.

    Values are str.format templates; use render() to fill them.
    """
    LOW_FOLLOW_RATE = (
        "Low follow rate ({follow_rate:.0f}%). Consider testing more recommendations."
    )
    HIGH_SUCCESS_RATE = (
        "Great success rate ({success_rate:.0f}%). Your recommendations are effective."
    )
    LOW_SUCCESS_RATE = (
        "Success rate is {success_rate:.0f}% across {measured} measured outcomes. "
        "Review which changes are being tested."
    )
    TOP_TYPE_OUTPERFORMED = (
        "\"{top_type}\" changes outperformed \"{runner_up}\" by {points:.0f} points."
    )
    TOP_TYPE_WORKS_BEST = "\"{top_type}\" recommendations work best."
    IMPROVED_COUNT = "{count} recommendations improved performance this month."

    def render(self, **values) -> str:
        return self.value.format(**values)


def _display_name(rec_type: RecommendationType) -> str:
    return rec_type.value.replace('_', ' ')


def _rank_top_types(patterns: List[AccountPattern]) -> List[AccountPattern]:
    ordered = sorted(
        (p for p in patterns if p.sample_size > 0),
        key=lambda p: (-p.success_rate, -p.sample_size, p.recommendation_type.value),
    )
    return ordered[:TOP_TYPES_LIMIT]


def _build_insights(
    generated: int,
    follow_rate: Optional[float],
    measured: int,
    success_rate: Optional[float],
    successes: int,
    top_types: List[AccountPattern],
) -> List[str]:
    insights = []

    if generated > 0 and follow_rate is not None and follow_rate < LOW_FOLLOW_RATE_PCT:
        insights.append(InsightTemplate.LOW_FOLLOW_RATE.render(follow_rate=follow_rate))

    if success_rate is not None:
        if success_rate >= HIGH_SUCCESS_RATE_PCT:
            insights.append(InsightTemplate.HIGH_SUCCESS_RATE.render(success_rate=success_rate))
        elif success_rate < LOW_SUCCESS_RATE_PCT and measured >= LOW_SUCCESS_MIN_MEASURED:
            insights.append(InsightTemplate.LOW_SUCCESS_RATE.render(
                success_rate=success_rate,
                measured=measured,
            ))

    if top_types:
        top = top_types[0]
        points = None
        if len(top_types) >= 2:
            points = top.success_rate - top_types[1].success_rate
        if points is not None and points > 0:
            insights.append(InsightTemplate.TOP_TYPE_OUTPERFORMED.render(
                top_type=_display_name(top.recommendation_type),
                runner_up=_display_name(top_types[1].recommendation_type),
                points=points,
            ))
        else:
            insights.append(InsightTemplate.TOP_TYPE_WORKS_BEST.render(
                top_type=_display_name(top.recommendation_type),
            ))

    if successes >= IMPROVED_COUNT_MIN:
        insights.append(InsightTemplate.IMPROVED_COUNT.render(count=successes))

    return insights


def build_monthly_summary(
    outcomes: List[OutcomeRecord],
    month: Union[YearMonth, str],
    account_id: Optional[str] = None,
    noise_floor_pct: Optional[float] = None,
) -> MonthlySummary:
    """
    Build the summary for one account and month.

    Args:
        outcomes: The account's outcome records (any months).
        month: Target month as YearMonth or 'YYYY-MM'.
        account_id: Account the summary belongs to; taken from the outcomes
            when omitted.
        noise_floor_pct: Success threshold on cpa_delta_pct; defaults to the
            configured success_noise_floor_pct.

    Returns:
        MonthlySummary. generated_at is left unset; the job stamps it.

    Raises:
        InvalidInputError: If month is malformed or outcomes span accounts.
    """
    if isinstance(month, str):
        month = YearMonth.parse(month)
    if noise_floor_pct is None:
        noise_floor_pct = get_settings().success_noise_floor_pct

    in_month = [outcome for outcome in outcomes if month.contains(outcome.created_at)]
    validate_account_history(in_month)

    generated = len(in_month)
    followed = sum(1 for o in in_month if o.status == RecommendationStatus.FOLLOWED)
    ignored = sum(1 for o in in_month if o.status == RecommendationStatus.IGNORED)
    resolved = filter_trackable_outcomes([o for o in in_month if o.is_resolved])
    measured = len(resolved)

    follow_rate = 100.0 * followed / generated if generated else None

    success_rate = None
    avg_cpa_improvement = None
    successes = 0
    if resolved:
        successes = sum(1 for o in resolved if o.cpa_delta_pct >= noise_floor_pct)
        success_rate = 100.0 * successes / measured
        avg_cpa_improvement = sum(o.cpa_delta_pct for o in resolved) / measured

    # Recency is measured from the start of the next month in the
    # outcomes' own timezone kind
    tzinfo = in_month[0].created_at.tzinfo if in_month else None
    month_end = month.next().start(tzinfo=tzinfo)
    patterns = aggregate_account_patterns(resolved, month_end, noise_floor_pct=noise_floor_pct)
    top_types = _rank_top_types(patterns)

    if account_id is None and in_month:
        account_id = in_month[0].account_id

    summary = MonthlySummary(
        account_id=account_id,
        month=str(month),
        recommendations_generated=generated,
        recommendations_followed=followed,
        recommendations_ignored=ignored,
        outcomes_measured=measured,
        follow_rate=follow_rate,
        success_rate=success_rate,
        avg_cpa_improvement=avg_cpa_improvement,
        top_performing_types=top_types,
        insights=_build_insights(
            generated, follow_rate, measured, success_rate, successes, top_types
        ),
    )

    logger.debug(
        f"Monthly summary {summary.month} for {account_id}: "
        f"{generated} generated, {followed} followed, {measured} measured"
    )

    return summary
