"""
Async PostgreSQL connection pool for the repository boundary.

The engine's core never touches the database. This module backs the
repository functions in athena.services.repository, which read metric
snapshots, outcome histories and privacy settings, and persist monthly
summaries.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Initialize the connection pool
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool
- execute_query() / execute_query_one() / execute_command(): query helpers

Connection Pool Configuration:
- min_size: 1
- max_size: 10
- command_timeout: 30 seconds

Usage:
    await init_db()

    rows = await execute_query(
        "SELECT * FROM recommendations WHERE user_id = $1", account_id
    )

    await close_db()
"""

from typing import Any, List, Optional

import asyncpg
from asyncpg import Pool

from athena.core.config import get_settings


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called; shared across all async tasks
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when one has already been created.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        ValueError: If DATABASE_URL is not configured.
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        if not settings.database_url:
            raise ValueError("DATABASE_URL not configured")

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=1,
            max_size=10,
            command_timeout=30,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing it lazily if needed.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Idempotent; subsequent calls to get_db_pool() create a new pool.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Query Execution Helpers
# =============================================================================

async def execute_query(query: str, *args: Any) -> List[asyncpg.Record]:
    """
    Execute a query and return all rows.

    Args:
        query: SQL with $1, $2, ... placeholders.
        *args: Positional query parameters.

    Returns:
        List of asyncpg records (dict-like).

    Raises:
        asyncpg.PostgresError: If the query fails.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.fetch(query, *args)


async def execute_query_one(query: str, *args: Any) -> Optional[asyncpg.Record]:
    """
    Execute a query and return the first row, or None when no row matches.

    Raises:
        asyncpg.PostgresError: If the query fails.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)


async def execute_command(query: str, *args: Any) -> str:
    """
    Execute an INSERT/UPDATE/DELETE and return the status string
    (e.g. 'INSERT 0 1', 'UPDATE 1').

    Raises:
        asyncpg.PostgresError: If the command fails.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.execute(query, *args)
