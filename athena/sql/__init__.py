"""
SQL Query Module for the ATHENA engine.

Provides parameterized SQL for the repository boundary
(athena.services.repository). Query functions are re-exported here so
callers can import from athena.sql directly.

Submodules:
    learning_queries: Metric snapshots, outcome histories, privacy settings
                      and monthly summary persistence.

Example usage:
    from athena.sql import get_outcome_records_query

    rows = await execute_query(get_outcome_records_query(), account_id)
"""

from athena.sql.learning_queries import (
    get_metric_snapshot_query,
    get_outcome_records_query,
    get_privacy_settings_query,
    get_privacy_update_query,
    get_summary_exists_query,
    get_monthly_summary_upsert_query,
)


__all__ = [
    'get_metric_snapshot_query',
    'get_outcome_records_query',
    'get_privacy_settings_query',
    'get_privacy_update_query',
    'get_summary_exists_query',
    'get_monthly_summary_upsert_query',
]
