"""
Monthly Learnings Job

Builds and stores each account's monthly recommendation summary.

Idempotency:
- At most one stored summary per (account, month); an existing summary is
  skipped unless force=True
- Re-running with force=True replaces the stored row (upsert)

The default month is the previous calendar month, since a month's summary
is only final once the month has closed.

Example:
    >>> result = await generate_monthly_learnings('8f1c...', month='2026-03')
    >>> if result['success'] and not result.get('skipped'):
    ...     print(result['insights'])
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from athena.core.errors import InvalidInputError
from athena.models.schemas import YearMonth
from athena.services.learning_pipeline import build_account_monthly_summary
from athena.services.repository import FETCH_ERRORS, check_summary_exists, upsert_monthly_summary


logger = logging.getLogger(__name__)


def default_month(now: Optional[datetime] = None) -> YearMonth:
    """Previous calendar month relative to `now` (UTC by default)."""
    now = now or datetime.now(timezone.utc)
    return YearMonth.of(now).previous()


async def generate_monthly_learnings(
    account_id: str,
    month: Optional[Union[YearMonth, str]] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Generate and store the monthly summary for one account.

    Args:
        account_id: Account to summarize.
        month: Target month; defaults to the previous calendar month.
        force: Regenerate even if a summary already exists.

    Returns:
        Dict with the following keys:
        - success: bool indicating if the operation succeeded
        - account_id: The account id
        - month: The month as 'YYYY-MM'
        - skipped: True when nothing was written
        - reason: Explanation if skipped
        - error: Error message if unsuccessful
        - outcomes_measured / success_rate / insights on success
    """
    try:
        target = YearMonth.parse(month) if isinstance(month, str) else (month or default_month())
    except InvalidInputError as e:
        return {
            'success': False,
            'error': str(e),
            'account_id': account_id,
            'month': None,
        }

    month_str = str(target)

    if not force:
        try:
            if await check_summary_exists(account_id, month_str):
                return {
                    'success': True,
                    'skipped': True,
                    'reason': 'Already generated',
                    'account_id': account_id,
                    'month': month_str,
                }
        except FETCH_ERRORS as e:
            logger.warning(
                f"Could not check existing summary for {account_id} {month_str}: {e}; "
                f"generating anyway"
            )

    try:
        summary = await build_account_monthly_summary(account_id, target)
    except InvalidInputError as e:
        return {
            'success': False,
            'error': f'Failed to build summary: {e}',
            'account_id': account_id,
            'month': month_str,
        }

    if summary.recommendations_generated == 0:
        return {
            'success': True,
            'skipped': True,
            'reason': 'No outcomes for month',
            'account_id': account_id,
            'month': month_str,
        }

    summary = summary.model_copy(update={'generated_at': datetime.now(timezone.utc)})

    try:
        await upsert_monthly_summary(account_id, summary)
    except FETCH_ERRORS as e:
        logger.error(f"Failed to store monthly summary for {account_id} {month_str}: {e}")
        return {
            'success': False,
            'error': f'Failed to store summary: {e}',
            'account_id': account_id,
            'month': month_str,
        }

    logger.info(
        f"Stored monthly summary for {account_id} {month_str}: "
        f"{summary.recommendations_generated} generated, "
        f"{summary.outcomes_measured} measured"
    )

    return {
        'success': True,
        'account_id': account_id,
        'month': month_str,
        'outcomes_measured': summary.outcomes_measured,
        'success_rate': summary.success_rate,
        'insights': summary.insights,
    }


async def generate_all_monthly_learnings(
    account_ids: Iterable[str],
    month: Optional[Union[YearMonth, str]] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Generate monthly summaries for several accounts.

    Accounts are processed one at a time; one account's failure does not
    stop the others.

    Returns:
        Dict with the following keys:
        - success: bool if no account failed
        - month: The month as 'YYYY-MM' (when resolvable)
        - results: List of per-account result dicts
        - summary: Dict with total, success_count, skipped_count, failed_count
    """
    if month is None:
        month = default_month()

    results = []
    success_count = 0
    skipped_count = 0
    failed_count = 0

    for account_id in account_ids:
        result = await generate_monthly_learnings(account_id, month, force)
        results.append(result)

        if result.get('success'):
            if result.get('skipped'):
                skipped_count += 1
            else:
                success_count += 1
        else:
            failed_count += 1

    return {
        'success': failed_count == 0,
        'month': str(month),
        'results': results,
        'summary': {
            'total': len(results),
            'success_count': success_count,
            'skipped_count': skipped_count,
            'failed_count': failed_count,
        },
    }
