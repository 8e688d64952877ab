"""
ATHENA Confidence Gating and Cross-Account Learning Engine.

Decides whether an ad has enough data for a trustworthy delivery score,
conversion score or recommendation, and turns recommendation outcomes into
per-account and anonymous cross-account patterns.

Subpackages:
    - core: Configuration, errors and database connectivity
    - models: Pydantic schemas and enums
    - services: Gate evaluation, specificity, pattern aggregation, privacy
      and the async learning pipeline
    - jobs: Monthly learnings generation
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
