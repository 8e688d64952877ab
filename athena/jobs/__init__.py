"""
Scheduled Jobs for the ATHENA engine.

- monthly_learnings: builds and stores each account's monthly
  recommendation summary

Idempotency:
- One stored summary per (account, month). Existing summaries are skipped
  unless force=True, which replaces the stored row.

Requires DATABASE_URL (see athena.core.config).

Example:
    from athena.jobs import generate_all_monthly_learnings

    result = await generate_all_monthly_learnings(account_ids, month='2026-03')
"""

from athena.jobs.monthly_learnings import (
    default_month,
    generate_monthly_learnings,
    generate_all_monthly_learnings,
)


__all__ = [
    'default_month',
    'generate_monthly_learnings',
    'generate_all_monthly_learnings',
]
