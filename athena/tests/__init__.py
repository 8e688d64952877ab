'''
ATHENA Engine Test Suite

Test Modules:
-------------
- test_gates.py: Gate evaluator
  - Age / impressions / conversions / attribution / spend sub-gates
  - Level boundaries and monotonicity
  - iOS and modeled-conversion confidence caps
  - gate_messages ordering, fail-closed missing snapshots

- test_audit.py: Gate decision audit log
- test_specificity.py: Specificity validator, draft validation, templates
- test_outcomes.py: Before/after outcome measurement and verdicts

- test_account_patterns.py: Per-account pattern aggregation
  - 2% success noise floor, recency, significance filter
  - Confidence ranking of recommendation drafts

- test_monthly_summary.py: Monthly summary builder and insight templates

- test_cross_account.py: Cross-account aggregation
  - Cohort floor of 10 accounts, weighted means, verticals
- test_privacy.py: Privacy gate opt-in/opt-out and snapshots

- test_repository.py: asyncpg repository boundary (mocked pool)
- test_learning_pipeline.py: Async orchestration with fail-closed inputs
- test_jobs.py: Monthly learnings job idempotency

Running Tests:
--------------
    pip install -e ".[test]"
    pytest athena/tests -v

Test Dependencies:
------------------
- pytest
- pytest-asyncio

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

# This file enables pytest discovery of the tests directory

__all__ = []
