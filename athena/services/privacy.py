"""
Privacy Gate Service

Process-wide registry of per-account cross-account sharing preferences.

- Accounts are opted in (share_aggregates=True) until they explicitly opt out
- Settings are created implicitly on first read and changed only by
  update_settings(); they are never deleted
- Opting out removes the account from cross-account aggregation only. Its
  own patterns and monthly summaries are unaffected

Readers take an eligibility snapshot with eligible_accounts(), which returns
a frozenset. A concurrent update never changes a snapshot already taken, so
one aggregation run sees one consistent view.

The gate is in-memory; athena.services.learning_pipeline loads persisted
settings into it and writes updates back through the repository. Calling
opt_in() or opt_out() directly changes this process only; a later load keeps
that choice while it is newer than the persisted row, but it is not stored.
"""

import logging
import threading
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from athena.models.enums import SharingState
from athena.models.schemas import PrivacySettings


logger = logging.getLogger(__name__)

DEFAULT_PRIVACY_SETTINGS = PrivacySettings(share_aggregates=True)

PRIVACY_COPY = {
    'toggle_label': 'Contribute to Community Insights',
    'toggle_description': 'Include my patterns in anonymous cross-account learnings',
    'help_text': (
        'Your data is never shared individually. '
        'Only patterns seen across 10+ accounts are used, '
        'and they cannot be traced back to you. '
        'Opting out will not affect your own insights or recommendations.'
    ),
    'opt_out_confirmation': (
        "You've opted out of community insights. "
        'Your data will not be included in cross-account patterns. '
        'Your own account insights remain fully functional.'
    ),
}


class PrivacyGate:
    """
    Thread-safe store of PrivacySettings keyed by account id.

    All reads and writes go through a single lock; snapshots handed out are
    immutable.
    """

    def __init__(self) -> None:
        self._settings: Dict[str, PrivacySettings] = {}
        self._lock = threading.Lock()

    def get_settings(self, account_id: str) -> PrivacySettings:
        """Return the account's settings, creating the opted-in default."""
        with self._lock:
            if account_id not in self._settings:
                self._settings[account_id] = DEFAULT_PRIVACY_SETTINGS
            return self._settings[account_id]

    def update_settings(
        self,
        account_id: str,
        share_aggregates: bool,
        updated_at: Optional[datetime] = None,
    ) -> PrivacySettings:
        """Explicitly set the sharing preference. The only mutation."""
        settings = PrivacySettings(
            share_aggregates=share_aggregates,
            updated_at=updated_at or datetime.now(timezone.utc),
        )
        with self._lock:
            previous = self._settings.get(account_id, DEFAULT_PRIVACY_SETTINGS)
            self._settings[account_id] = settings

        if previous.share_aggregates != share_aggregates:
            logger.info(f"Account {account_id} moved to {settings.state.value}")

        return settings

    def opt_in(self, account_id: str) -> PrivacySettings:
        return self.update_settings(account_id, True)

    def opt_out(self, account_id: str) -> PrivacySettings:
        return self.update_settings(account_id, False)

    def state(self, account_id: str) -> SharingState:
        return self.get_settings(account_id).state

    def is_eligible(self, account_id: str) -> bool:
        return self.get_settings(account_id).share_aggregates

    def eligible_accounts(self, account_ids: Iterable[str]) -> FrozenSet[str]:
        """
        Snapshot of which of the given accounts are opted in.

        Accounts never seen before are opted in by default.
        """
        account_ids = list(account_ids)
        with self._lock:
            eligible = frozenset(
                account_id for account_id in account_ids
                if self._settings.get(account_id, DEFAULT_PRIVACY_SETTINGS).share_aggregates
            )
        return eligible

    def load_settings(self, settings: Mapping[str, PrivacySettings]) -> None:
        """
        Merge persisted settings into the cache.

        A cached preference stamped later than the persisted row wins, so an
        opt_in() or opt_out() made in this process survives a reload until it
        is written back.
        """
        with self._lock:
            for account_id, persisted in settings.items():
                cached = self._settings.get(account_id)
                if cached is not None and _is_newer(cached, persisted):
                    logger.debug(f"Keeping newer in-memory privacy setting for {account_id}")
                    continue
                self._settings[account_id] = persisted

    def reset(self) -> None:
        """Forget all cached settings."""
        with self._lock:
            self._settings.clear()


def _is_newer(cached: PrivacySettings, persisted: PrivacySettings) -> bool:
    if cached.updated_at is None:
        return False
    if persisted.updated_at is None:
        return True
    if (cached.updated_at.tzinfo is None) != (persisted.updated_at.tzinfo is None):
        return False
    return cached.updated_at > persisted.updated_at


@lru_cache()
def get_privacy_gate() -> PrivacyGate:
    """Get the process-wide PrivacyGate instance."""
    return PrivacyGate()
