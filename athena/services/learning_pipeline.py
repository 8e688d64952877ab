"""
Learning Pipeline

Async orchestration between the repository boundary and the pure core.

- evaluate_ad: fetch snapshot -> gates (fail closed on missing data) -> audit
- compute_account_learnings: fetch history -> specificity filter -> patterns
- compute_cross_account_learnings: load privacy settings, take ONE
  eligibility snapshot, then fetch only eligible accounts' histories
  concurrently and aggregate
- get_account_insights: blend an account's own patterns with cohort patterns
- update_privacy_settings: persist an explicit preference, then apply it
- build_account_monthly_summary: fetch history -> monthly summary

Boundary failures never reach the core as exceptions. A missing snapshot is
evaluated fail-closed, a failed history fetch is an empty history, and a
failed privacy fetch disables cross-account output for that run.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Union

from athena.core.errors import InvalidInputError
from athena.models.enums import GateDecisionType
from athena.models.schemas import (
    AccountPattern,
    CrossAccountPattern,
    GateStatus,
    GateThresholds,
    MonthlySummary,
    PatternInsight,
    PrivacySettings,
    SignificanceFilter,
    YearMonth,
)
from athena.services.account_patterns import aggregate_account_patterns
from athena.services.audit import log_gate_decision
from athena.services.cross_account import (
    aggregate_cross_account,
    blend_with_cross_account,
    effective_min_cohort,
)
from athena.services.gates import evaluate_gates, evaluate_missing_snapshot
from athena.services.monthly_summary import build_monthly_summary
from athena.services.privacy import PrivacyGate, get_privacy_gate
from athena.services.repository import (
    fetch_metric_snapshot,
    fetch_outcome_records,
    fetch_privacy_settings,
    save_privacy_settings,
)
from athena.services.specificity import filter_trackable_outcomes


logger = logging.getLogger(__name__)


# =============================================================================
# Gate Evaluation
# =============================================================================


async def evaluate_ad(
    ad_id: str,
    account_id: str,
    thresholds: Optional[GateThresholds] = None,
    gate_type: GateDecisionType = GateDecisionType.SCORE_ATTEMPT,
) -> GateStatus:
    """
    Evaluate gates for one ad and record the decision in the audit log.

    A snapshot that cannot be fetched is evaluated with
    evaluate_missing_snapshot(), so every gate fails.
    """
    snapshot = await fetch_metric_snapshot(ad_id)

    if snapshot is None:
        logger.info(f"No metric snapshot for ad {ad_id}; evaluating fail-closed")
        status = evaluate_missing_snapshot(thresholds)
    else:
        status = evaluate_gates(snapshot, thresholds)

    log_gate_decision(status, account_id, ad_id=ad_id, gate_type=gate_type)
    return status


# =============================================================================
# Account and Cross-Account Learnings
# =============================================================================


async def compute_account_learnings(account_id: str, now: datetime) -> List[AccountPattern]:
    """
    Compute an account's own patterns from its trackable outcome history.

    Opt-out state is never consulted here: an account's own learnings are
    always available.
    """
    outcomes = await fetch_outcome_records(account_id)
    trackable = filter_trackable_outcomes(outcomes)

    try:
        return aggregate_account_patterns(trackable, now)
    except InvalidInputError as e:
        logger.warning(f"Could not aggregate outcomes for account {account_id}: {e}")
        return []


async def compute_cross_account_learnings(
    account_ids: Iterable[str],
    now: datetime,
    gate: Optional[PrivacyGate] = None,
    min_cohort: Optional[int] = None,
    verticals: Optional[Mapping[str, str]] = None,
) -> List[CrossAccountPattern]:
    """
    Compute anonymous cohort patterns across accounts.

    Privacy settings are loaded and the eligibility snapshot is taken once,
    before any outcome history is read. Opted-out accounts' histories are
    never fetched.

    Returns:
        Cohort patterns; [] when privacy settings could not be loaded or too
        few accounts are eligible.
    """
    gate = gate or get_privacy_gate()
    account_ids = list(dict.fromkeys(account_ids))

    persisted = await fetch_privacy_settings(account_ids)
    if persisted is None:
        logger.warning("Privacy settings unavailable; skipping cross-account aggregation")
        return []
    gate.load_settings(persisted)

    eligible = gate.eligible_accounts(account_ids)
    cohort_size = effective_min_cohort(min_cohort)
    if len(eligible) < cohort_size:
        logger.info(
            f"Only {len(eligible)} of {len(account_ids)} accounts eligible; "
            f"below cohort size {cohort_size}"
        )
        return []

    ordered = sorted(eligible)
    histories = await asyncio.gather(
        *(compute_account_learnings(account_id, now) for account_id in ordered)
    )
    patterns_by_account = dict(zip(ordered, histories))

    return aggregate_cross_account(
        patterns_by_account,
        eligible,
        min_cohort=cohort_size,
        verticals=verticals,
    )


async def get_account_insights(
    account_id: str,
    now: datetime,
    cross_patterns: List[CrossAccountPattern],
    significance: Optional[SignificanceFilter] = None,
) -> List[PatternInsight]:
    """
    Patterns to show one account: its own actionable patterns first, cohort
    patterns only for types it has no actionable evidence for.
    """
    local = await compute_account_learnings(account_id, now)
    return blend_with_cross_account(local, cross_patterns, significance)


# =============================================================================
# Privacy
# =============================================================================


async def update_privacy_settings(
    account_id: str,
    share_aggregates: bool,
    gate: Optional[PrivacyGate] = None,
    updated_at: Optional[datetime] = None,
) -> PrivacySettings:
    """
    Persist an explicit sharing preference, then apply it to the gate.

    The gate is only changed after the write succeeds.

    Raises:
        asyncpg.PostgresError: If the preference could not be saved.
    """
    gate = gate or get_privacy_gate()
    settings = PrivacySettings(
        share_aggregates=share_aggregates,
        updated_at=updated_at or datetime.now(timezone.utc),
    )

    await save_privacy_settings(account_id, settings)
    return gate.update_settings(account_id, share_aggregates, updated_at=settings.updated_at)


# =============================================================================
# Monthly Summary
# =============================================================================


async def build_account_monthly_summary(
    account_id: str,
    month: Union[YearMonth, str],
) -> MonthlySummary:
    """Fetch an account's history and build its summary for one month."""
    outcomes = await fetch_outcome_records(account_id)
    return build_monthly_summary(outcomes, month, account_id=account_id)
