"""
Cross-Account Aggregator Service

Merges per-account patterns into anonymous cohort patterns so accounts with
thin history can benefit from what worked elsewhere.

Pipeline:
1. Restrict input to the eligible (opted-in) accounts snapshot
2. Group patterns by recommendation type, and by vertical when a vertical
   map is supplied
3. Per group: distinct account_count, total_sample_size, and sample-size
   weighted means of success rate and CPA improvement
4. Suppress every group whose account_count is below the cohort size

The cohort size can be raised by configuration or per call but never
lowered below MIN_COHORT_FLOOR (10). Suppression is by omission and is
logged at DEBUG; callers cannot force disclosure of a smaller group.

No account identifier survives step 1: outputs carry only type, vertical
and aggregates.

Weighted mean:
    avg_success_rate = sum(success_rate_i * sample_size_i) / sum(sample_size_i)
"""

import logging
from typing import AbstractSet, Dict, List, Mapping, Optional, Tuple

import numpy as np

from athena.core.config import get_settings
from athena.models.enums import PatternSource, RecommendationType
from athena.models.schemas import (
    AccountPattern,
    CrossAccountPattern,
    PatternInsight,
    SignificanceFilter,
)


# =============================================================================
# Module Constants
# =============================================================================

# Hard anonymity floor for cross-account groups
MIN_COHORT_FLOOR: int = 10

logger = logging.getLogger(__name__)

GroupKey = Tuple[RecommendationType, Optional[str]]


def effective_min_cohort(min_cohort: Optional[int] = None) -> int:
    """Cohort size actually enforced: the request, raised to the floor."""
    requested = min_cohort if min_cohort is not None else get_settings().min_cohort
    if requested < MIN_COHORT_FLOOR:
        logger.warning(
            f"Requested min_cohort={requested} is below the anonymity floor; "
            f"using {MIN_COHORT_FLOOR}"
        )
    return max(requested, MIN_COHORT_FLOOR)


def aggregate_cross_account(
    patterns_by_account: Mapping[str, List[AccountPattern]],
    eligible_accounts: AbstractSet[str],
    min_cohort: Optional[int] = None,
    verticals: Optional[Mapping[str, str]] = None,
) -> List[CrossAccountPattern]:
    """
    Aggregate eligible accounts' patterns into anonymous cohort patterns.

    Args:
        patterns_by_account: Account id -> that account's patterns.
        eligible_accounts: Snapshot of opted-in account ids, read once by
            the caller before any pattern read.
        min_cohort: Requested cohort size; defaults to settings.min_cohort
            and is never allowed below MIN_COHORT_FLOOR.
        verticals: Optional account id -> vertical map. When supplied,
            groups are keyed by (type, vertical).

    Returns:
        CrossAccountPattern list sorted by type then vertical. Empty when no
        group reaches the cohort size.
    """
    cohort_size = effective_min_cohort(min_cohort)

    groups: Dict[GroupKey, Dict[str, list]] = {}

    for account_id, patterns in patterns_by_account.items():
        if account_id not in eligible_accounts:
            continue

        vertical = verticals.get(account_id) if verticals is not None else None

        for pattern in patterns:
            if pattern.account_id != account_id:
                logger.warning(
                    f"Skipping pattern filed under the wrong account "
                    f"({pattern.recommendation_type.value})"
                )
                continue
            if pattern.sample_size == 0:
                continue

            group = groups.setdefault(
                (pattern.recommendation_type, vertical),
                {'accounts': set(), 'sizes': [], 'rates': [], 'cpa_sizes': [], 'cpa': []},
            )
            group['accounts'].add(account_id)
            group['sizes'].append(pattern.sample_size)
            group['rates'].append(pattern.success_rate)
            if pattern.avg_cpa_improvement is not None:
                group['cpa_sizes'].append(pattern.sample_size)
                group['cpa'].append(pattern.avg_cpa_improvement)

    results = []
    for (rec_type, vertical), group in groups.items():
        account_count = len(group['accounts'])
        if account_count < cohort_size:
            logger.debug(
                f"Suppressed cross-account group {rec_type.value}"
                f"{'/' + vertical if vertical else ''}: "
                f"{account_count} accounts < cohort size {cohort_size}"
            )
            continue

        avg_cpa = None
        if group['cpa']:
            avg_cpa = float(np.average(group['cpa'], weights=group['cpa_sizes']))

        results.append(CrossAccountPattern(
            recommendation_type=rec_type,
            vertical=vertical,
            account_count=account_count,
            total_sample_size=int(np.sum(group['sizes'])),
            avg_success_rate=float(np.average(group['rates'], weights=group['sizes'])),
            avg_cpa_improvement=avg_cpa,
        ))

    results.sort(key=lambda p: (p.recommendation_type.value, p.vertical or ''))

    logger.info(
        f"Cross-account aggregation: {len(results)} of {len(groups)} groups "
        f"met cohort size {cohort_size}"
    )

    return results


def blend_with_cross_account(
    local: List[AccountPattern],
    cross: List[CrossAccountPattern],
    significance: Optional[SignificanceFilter] = None,
) -> List[PatternInsight]:
    """
    Combine an account's own patterns with cohort patterns.

    Local patterns that pass the significance filter always win. Cohort
    patterns only fill types with no actionable local pattern, so
    cross-account data never replaces an account's own evidence.

    Returns:
        One PatternInsight per type, sorted by recommendation type.
    """
    if significance is None:
        significance = SignificanceFilter.from_settings()

    insights: Dict[RecommendationType, PatternInsight] = {}

    for pattern in local:
        if not significance.is_actionable(pattern):
            continue
        insights[pattern.recommendation_type] = PatternInsight(
            recommendation_type=pattern.recommendation_type,
            source=PatternSource.ACCOUNT,
            success_rate=pattern.success_rate,
            sample_size=pattern.sample_size,
            avg_cpa_improvement=pattern.avg_cpa_improvement,
            recency_days=pattern.recency_days,
        )

    for pattern in sorted(cross, key=lambda p: -p.account_count):
        if pattern.recommendation_type in insights:
            continue
        insights[pattern.recommendation_type] = PatternInsight(
            recommendation_type=pattern.recommendation_type,
            source=PatternSource.CROSS_ACCOUNT,
            success_rate=pattern.avg_success_rate,
            sample_size=pattern.total_sample_size,
            avg_cpa_improvement=pattern.avg_cpa_improvement,
            account_count=pattern.account_count,
        )

    return sorted(insights.values(), key=lambda i: i.recommendation_type.value)
