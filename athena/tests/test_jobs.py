"""
Monthly Learnings Job Test Module

Covers athena/jobs/monthly_learnings.py:
- Idempotency: an existing (account, month) summary is skipped
- force=True regenerates and upserts
- Months with no outcomes are skipped without writing
- Storage failures reported in the status dict
- Default month selection and batch processing across accounts
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from athena.core.errors import InvalidInputError
from athena.jobs.monthly_learnings import (
    default_month,
    generate_all_monthly_learnings,
    generate_monthly_learnings,
)
from athena.models import MonthlySummary, YearMonth


JOB = 'athena.jobs.monthly_learnings'


def make_summary(generated: int = 4, **overrides) -> MonthlySummary:
    data = {
        'account_id': 'acct_1',
        'month': '2026-03',
        'recommendations_generated': generated,
        'recommendations_followed': min(generated, 2),
        'outcomes_measured': min(generated, 2),
        'success_rate': 50.0 if generated else None,
        'insights': ['"offer timing" recommendations work best.'] if generated else [],
    }
    data.update(overrides)
    return MonthlySummary(**data)


@pytest.fixture
def job_mocks():
    """Patch the job's collaborators; yields a dict of the mocks."""
    with patch(f'{JOB}.check_summary_exists', new=AsyncMock(return_value=False)) as exists, \
            patch(f'{JOB}.build_account_monthly_summary',
                  new=AsyncMock(return_value=make_summary())) as build, \
            patch(f'{JOB}.upsert_monthly_summary', new=AsyncMock(return_value=None)) as upsert:
        yield {'exists': exists, 'build': build, 'upsert': upsert}


@pytest.mark.asyncio
class TestGenerateMonthlyLearnings:

    async def test_generates_and_stores(self, job_mocks):
        result = await generate_monthly_learnings('acct_1', month='2026-03')

        assert result['success'] is True
        assert 'skipped' not in result
        assert result['month'] == '2026-03'
        assert result['outcomes_measured'] == 2
        assert result['insights'] == ['"offer timing" recommendations work best.']

        job_mocks['build'].assert_awaited_once_with('acct_1', YearMonth(year=2026, month=3))
        stored = job_mocks['upsert'].await_args[0][1]
        assert stored.generated_at is not None

    async def test_existing_summary_is_skipped(self, job_mocks):
        job_mocks['exists'].return_value = True

        result = await generate_monthly_learnings('acct_1', month='2026-03')

        assert result == {
            'success': True,
            'skipped': True,
            'reason': 'Already generated',
            'account_id': 'acct_1',
            'month': '2026-03',
        }
        job_mocks['build'].assert_not_awaited()
        job_mocks['upsert'].assert_not_awaited()

    async def test_force_regenerates(self, job_mocks):
        job_mocks['exists'].return_value = True

        result = await generate_monthly_learnings('acct_1', month='2026-03', force=True)

        assert result['success'] is True
        job_mocks['exists'].assert_not_awaited()
        job_mocks['upsert'].assert_awaited_once()

    async def test_month_without_outcomes_is_skipped(self, job_mocks):
        job_mocks['build'].return_value = make_summary(generated=0)

        result = await generate_monthly_learnings('acct_1', month='2026-03')

        assert result['skipped'] is True
        assert result['reason'] == 'No outcomes for month'
        job_mocks['upsert'].assert_not_awaited()

    async def test_invalid_month(self, job_mocks):
        result = await generate_monthly_learnings('acct_1', month='March')

        assert result['success'] is False
        assert result['month'] is None
        assert 'YYYY-MM' in result['error']
        job_mocks['build'].assert_not_awaited()

    async def test_build_error_is_reported(self, job_mocks):
        job_mocks['build'].side_effect = InvalidInputError('Outcomes must belong to a single account')

        result = await generate_monthly_learnings('acct_1', month='2026-03')

        assert result['success'] is False
        assert result['error'].startswith('Failed to build summary')

    async def test_store_failure_is_reported(self, job_mocks):
        job_mocks['upsert'].side_effect = asyncpg.PostgresError('unique violation')

        result = await generate_monthly_learnings('acct_1', month='2026-03')

        assert result['success'] is False
        assert result['error'].startswith('Failed to store summary')

    async def test_exists_check_failure_still_generates(self, job_mocks):
        job_mocks['exists'].side_effect = OSError('connection reset')

        result = await generate_monthly_learnings('acct_1', month='2026-03')

        assert result['success'] is True
        job_mocks['upsert'].assert_awaited_once()

    async def test_defaults_to_previous_month(self, job_mocks):
        result = await generate_monthly_learnings('acct_1')

        assert result['month'] == str(default_month())


class TestDefaultMonth:

    def test_previous_month(self):
        assert default_month(datetime(2026, 4, 15, tzinfo=timezone.utc)) == YearMonth(year=2026, month=3)

    def test_wraps_to_december(self):
        assert default_month(datetime(2026, 1, 3, tzinfo=timezone.utc)) == YearMonth(year=2025, month=12)


@pytest.mark.asyncio
class TestGenerateAllMonthlyLearnings:

    async def test_counts_each_outcome(self, job_mocks):
        async def exists(account_id, month):
            return account_id == 'acct_2'

        async def build(account_id, month):
            return make_summary(generated=0 if account_id == 'acct_3' else 4, account_id=account_id)

        job_mocks['exists'].side_effect = exists
        job_mocks['build'].side_effect = build

        result = await generate_all_monthly_learnings(
            ['acct_1', 'acct_2', 'acct_3'], month='2026-03',
        )

        assert result['success'] is True
        assert result['month'] == '2026-03'
        assert result['summary'] == {
            'total': 3,
            'success_count': 1,
            'skipped_count': 2,
            'failed_count': 0,
        }

    async def test_one_failure_does_not_stop_others(self, job_mocks):
        job_mocks['upsert'].side_effect = [OSError('disk full'), None]

        result = await generate_all_monthly_learnings(['acct_1', 'acct_2'], month='2026-03')

        assert result['success'] is False
        assert result['summary']['failed_count'] == 1
        assert result['summary']['success_count'] == 1
        assert [r['account_id'] for r in result['results']] == ['acct_1', 'acct_2']
