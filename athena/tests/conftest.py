"""
Pytest Configuration and Shared Fixtures for ATHENA Tests.

Provides:
- Custom markers (slow, privacy)
- Settings cache reset between tests so env overrides never leak
- Mock asyncpg pool fixtures for repository and job tests
- Factories for OutcomeRecord and AccountPattern test data
- A fixed reference time so aggregation tests are reproducible
- A fresh PrivacyGate per test

Dependencies:
- pytest
- pytest-asyncio
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional
from unittest.mock import AsyncMock, Mock, patch

import pytest

from athena.core.config import get_settings
from athena.models import (
    AccountPattern,
    OutcomeRecord,
    RecommendationStatus,
    RecommendationType,
)
from athena.services.privacy import PrivacyGate


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: marks tests as slow (deselect with -m "not slow")
    - privacy: marks tests covering opt-out and cohort anonymity rules
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'privacy: marks tests covering opt-out and cohort anonymity rules'
    )


# ============================================================
# SETTINGS
# ============================================================

@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Reset the cached Settings before and after every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_conn() -> AsyncMock:
    """
    Mock asyncpg connection with fetch/fetchrow/execute defaults.

    - fetch returns []
    - fetchrow returns None
    - execute returns 'UPDATE 1'
    """
    conn = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value='UPDATE 1')
    return conn


@pytest.fixture
def mock_db_pool(mock_db_conn: AsyncMock) -> AsyncMock:
    """
    Mock asyncpg pool whose acquire() yields mock_db_conn.

    Usage:
        async def test_query(mock_database, mock_db_conn):
            mock_db_conn.fetch.return_value = [{'id': 1}]
    """
    pool = AsyncMock()

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=mock_db_conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)
    pool.close = AsyncMock(return_value=None)

    return pool


@pytest.fixture
def mock_database(mock_db_pool: AsyncMock) -> Generator[AsyncMock, None, None]:
    """
    Patch athena.core.database.get_db_pool to return mock_db_pool.

    The execute_query / execute_query_one / execute_command helpers look up
    get_db_pool at call time, so everything built on them uses the mock.
    """
    with patch(
        'athena.core.database.get_db_pool',
        new=AsyncMock(return_value=mock_db_pool),
    ):
        yield mock_db_pool


# ============================================================
# TIME
# ============================================================

@pytest.fixture
def now() -> datetime:
    """Fixed reference time for aggregation tests."""
    return datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# DATA FACTORIES
# ============================================================

# One concrete recommendation per type, each passing is_specific() for it
SPECIFIC_TEXT_BY_TYPE = {
    RecommendationType.MOTION_TIMING: 'Add motion in the first 2 seconds',
    RecommendationType.CUT_DENSITY: 'Add 3 cuts in the first 5 seconds',
    RecommendationType.TEXT_APPEARANCE: 'Show on-screen text by 1 second',
    RecommendationType.VALUE_TIMING: 'State the value prop within 3 seconds',
    RecommendationType.OFFER_TIMING: 'Introduce offer within first 5 seconds',
    RecommendationType.CTA_CLARITY: 'Change CTA to "Shop the sale now"',
    RecommendationType.PROOF_ADDITION: 'Add 2 customer testimonials at 10 seconds',
    RecommendationType.PRICING_VISIBILITY: 'Show the price within 4 seconds',
    RecommendationType.LANDING_PAGE: 'Reduce landing page load time to 2 seconds',
    RecommendationType.CHECKOUT_FLOW: 'Reduce checkout to 2 payment steps',
    RecommendationType.AUDIENCE_REFRESH: 'Refresh lookalike audiences every 14 days',
}

_TYPE_TEXT = object()


@pytest.fixture
def make_outcome(now: datetime) -> Callable[..., OutcomeRecord]:
    """
    Factory for OutcomeRecord test data.

    Defaults to a followed, resolved offer_timing outcome created 20 days
    before `now` and resolved 7 days after creation. Unless text is given,
    the record carries the specific text for its type.

    Usage:
        outcome = make_outcome(cpa_delta_pct=12.0)
        pending = make_outcome(status=RecommendationStatus.PENDING, resolved=False)
    """
    counter = itertools.count(1)

    def _make(
        account_id: str = 'acct_1',
        rec_type: RecommendationType = RecommendationType.OFFER_TIMING,
        cpa_delta_pct: Optional[float] = 5.0,
        status: RecommendationStatus = RecommendationStatus.FOLLOWED,
        created_at: Optional[datetime] = None,
        resolved: bool = True,
        resolved_at: Optional[datetime] = None,
        text: Optional[str] = _TYPE_TEXT,
    ) -> OutcomeRecord:
        if text is _TYPE_TEXT:
            text = SPECIFIC_TEXT_BY_TYPE[rec_type]
        created = created_at or (now - timedelta(days=20))
        followed = status == RecommendationStatus.FOLLOWED
        if resolved and resolved_at is None:
            resolved_at = created + timedelta(days=7)

        return OutcomeRecord(
            recommendation_id=f'rec_{next(counter)}',
            account_id=account_id,
            recommendation_type=rec_type,
            status=status,
            created_at=created,
            followed_at=created + timedelta(days=1) if followed else None,
            resolved_at=resolved_at if resolved else None,
            cpa_delta_pct=cpa_delta_pct if resolved else None,
            recommendation_text=text,
        )

    return _make


@pytest.fixture
def make_pattern() -> Callable[..., AccountPattern]:
    """
    Factory for AccountPattern test data.

    successes is derived from success_rate and sample_size.
    """

    def _make(
        account_id: str,
        rec_type: RecommendationType = RecommendationType.OFFER_TIMING,
        sample_size: int = 5,
        success_rate: Optional[float] = 60.0,
        avg_cpa_improvement: Optional[float] = 8.0,
        recency_days: Optional[int] = 10,
    ) -> AccountPattern:
        if sample_size == 0:
            success_rate = None
            avg_cpa_improvement = None
        successes = int(round(success_rate * sample_size / 100)) if success_rate is not None else 0

        return AccountPattern(
            account_id=account_id,
            recommendation_type=rec_type,
            sample_size=sample_size,
            successes=successes,
            success_rate=success_rate,
            avg_cpa_improvement=avg_cpa_improvement,
            recency_days=recency_days,
        )

    return _make


# ============================================================
# PRIVACY
# ============================================================

@pytest.fixture
def privacy_gate() -> PrivacyGate:
    """A fresh, empty PrivacyGate (every account opted in by default)."""
    return PrivacyGate()
