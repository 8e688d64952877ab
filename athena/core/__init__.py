"""
Core infrastructure package for the ATHENA engine.

Provides:
- Configuration management via pydantic-settings
- The InvalidInputError raised for malformed snapshots and outcomes
- Async PostgreSQL connectivity via asyncpg for the repository boundary

Usage:
    from athena.core import get_settings, InvalidInputError
"""

from athena.core.config import Settings, get_settings
from athena.core.errors import InvalidInputError
from athena.core.database import init_db, close_db, get_db_pool


__all__ = [
    'Settings',
    'get_settings',
    'InvalidInputError',
    'init_db',
    'close_db',
    'get_db_pool',
]
