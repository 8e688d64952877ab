"""
Repository Boundary for Gating and Learning

Async data access for the engine's collaborators: metric snapshots,
recommendation outcome histories, privacy settings and persisted monthly
summaries. Everything here goes through athena.core.database; SQL lives in
athena.sql.learning_queries.

Failure translation:
- Fetch failures (database errors, connection errors, timeouts) are logged
  at WARNING and returned as missing input: None for a snapshot or privacy
  batch, [] for an outcome history
- Malformed rows are skipped (outcomes) or treated as missing (snapshots),
  never clamped
- Writes raise, so jobs can report the failure

The pure core (athena.services.gates, account_patterns, ...) never imports
this module.
"""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

import asyncpg

from athena.core.database import execute_command, execute_query, execute_query_one
from athena.core.errors import InvalidInputError
from athena.models.schemas import MetricSnapshot, MonthlySummary, OutcomeRecord, PrivacySettings
from athena.sql.learning_queries import (
    get_metric_snapshot_query,
    get_monthly_summary_upsert_query,
    get_outcome_records_query,
    get_privacy_settings_query,
    get_privacy_update_query,
    get_summary_exists_query,
)


# Exceptions that mean "the collaborator could not be reached or answered
# with an error"; translated to missing input on reads
FETCH_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)

logger = logging.getLogger(__name__)


def _row_to_payload(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert a database row to a plain dict, turning NUMERIC into float."""
    payload = {}
    for key, value in dict(row).items():
        payload[key] = float(value) if isinstance(value, Decimal) else value
    return payload


# =============================================================================
# Reads
# =============================================================================


async def fetch_metric_snapshot(ad_id: str) -> Optional[MetricSnapshot]:
    """
    Fetch the current metric snapshot for an ad.

    Returns:
        MetricSnapshot, or None when the ad is unknown, the fetch failed or
        the stored row is invalid. Callers evaluate None with
        evaluate_missing_snapshot().
    """
    try:
        row = await execute_query_one(get_metric_snapshot_query(), ad_id)
    except FETCH_ERRORS as e:
        logger.warning(f"Metric snapshot fetch failed for ad {ad_id}: {e}")
        return None

    if row is None:
        return None

    try:
        return MetricSnapshot.from_payload(_row_to_payload(row))
    except InvalidInputError as e:
        logger.warning(f"Invalid metric snapshot for ad {ad_id}: {e}")
        return None


async def fetch_outcome_records(
    account_id: str,
    only_followed: bool = False,
) -> List[OutcomeRecord]:
    """
    Fetch an account's recommendation outcome history.

    Args:
        account_id: Account to read.
        only_followed: Restrict to followed recommendations.

    Returns:
        Valid OutcomeRecords oldest first. Malformed rows are skipped with a
        warning; a failed fetch returns [].
    """
    try:
        rows = await execute_query(get_outcome_records_query(only_followed), account_id)
    except FETCH_ERRORS as e:
        logger.warning(f"Outcome history fetch failed for account {account_id}: {e}")
        return []

    records = []
    skipped = 0
    for row in rows:
        try:
            records.append(OutcomeRecord.from_payload(_row_to_payload(row)))
        except InvalidInputError as e:
            skipped += 1
            logger.debug(f"Skipping malformed outcome row: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} malformed outcome rows for account {account_id}")

    return records


async def fetch_privacy_settings(
    account_ids: Iterable[str],
) -> Optional[Dict[str, PrivacySettings]]:
    """
    Fetch persisted sharing preferences for a batch of accounts.

    Returns:
        Dict of account id -> PrivacySettings for accounts with a stored
        preference, or None when the fetch failed. Absent accounts keep the
        opted-in default.
    """
    account_ids = list(account_ids)
    if not account_ids:
        return {}

    try:
        rows = await execute_query(get_privacy_settings_query(), account_ids)
    except FETCH_ERRORS as e:
        logger.warning(f"Privacy settings fetch failed for {len(account_ids)} accounts: {e}")
        return None

    return {
        row['account_id']: PrivacySettings(
            share_aggregates=row['share_aggregates'] is not False,
            updated_at=row['updated_at'],
        )
        for row in rows
    }


async def check_summary_exists(account_id: str, month: str) -> bool:
    """
    Check whether a monthly summary was already stored.

    Raises:
        asyncpg.PostgresError: If the query fails.
    """
    row = await execute_query_one(get_summary_exists_query(), account_id, month)
    return row is not None


# =============================================================================
# Writes
# =============================================================================


async def save_privacy_settings(account_id: str, settings: PrivacySettings) -> None:
    """
    Persist an explicit sharing preference.

    Raises:
        asyncpg.PostgresError: If the update fails.
    """
    await execute_command(
        get_privacy_update_query(),
        account_id,
        settings.share_aggregates,
        settings.updated_at,
    )


async def upsert_monthly_summary(account_id: str, summary: MonthlySummary) -> None:
    """
    Insert or replace the stored summary for (account_id, summary.month).

    Raises:
        asyncpg.PostgresError: If the upsert fails.
    """
    data = summary.model_dump(mode='json')

    await execute_command(
        get_monthly_summary_upsert_query(),
        account_id,
        summary.month,
        summary.recommendations_generated,
        summary.recommendations_followed,
        summary.recommendations_ignored,
        summary.outcomes_measured,
        summary.follow_rate,
        summary.success_rate,
        summary.avg_cpa_improvement,
        json.dumps(data['top_performing_types']),
        json.dumps(data['insights']),
        summary.generated_at,
    )
