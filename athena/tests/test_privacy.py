"""
Privacy Gate Test Module

Covers athena/services/privacy.py: opted-in defaults, explicit opt-out and
opt-in, immutable eligibility snapshots, loading persisted settings, and the
guarantee that opting out never touches an account's own learnings.
"""

import threading
from datetime import datetime, timezone

import pytest

from athena.models import PrivacySettings, SharingState
from athena.services.account_patterns import aggregate_account_patterns
from athena.services.cross_account import aggregate_cross_account
from athena.services.privacy import (
    PRIVACY_COPY,
    get_privacy_gate,
)


pytestmark = pytest.mark.privacy


class TestDefaults:

    def test_new_account_is_opted_in(self, privacy_gate):
        settings = privacy_gate.get_settings('acct_1')

        assert settings.share_aggregates is True
        assert settings.state == SharingState.OPTED_IN
        assert privacy_gate.is_eligible('acct_1') is True

    def test_unknown_accounts_are_eligible_in_snapshots(self, privacy_gate):
        assert privacy_gate.eligible_accounts(['a', 'b']) == frozenset({'a', 'b'})

    def test_process_wide_gate_is_shared(self):
        assert get_privacy_gate() is get_privacy_gate()

    def test_copy_mentions_cohort_floor(self):
        assert '10+ accounts' in PRIVACY_COPY['help_text']


class TestUpdates:

    def test_opt_out_then_in(self, privacy_gate):
        privacy_gate.opt_out('acct_1')
        assert privacy_gate.state('acct_1') == SharingState.OPTED_OUT

        privacy_gate.opt_in('acct_1')
        assert privacy_gate.state('acct_1') == SharingState.OPTED_IN

    def test_update_records_timestamp(self, privacy_gate):
        when = datetime(2026, 3, 1, tzinfo=timezone.utc)

        settings = privacy_gate.update_settings('acct_1', False, updated_at=when)

        assert settings.updated_at == when
        assert privacy_gate.get_settings('acct_1') == settings

    def test_opt_out_is_immediate_for_new_snapshots(self, privacy_gate):
        ids = ['acct_1', 'acct_2', 'acct_3']
        before = privacy_gate.eligible_accounts(ids)

        privacy_gate.opt_out('acct_2')
        after = privacy_gate.eligible_accounts(ids)

        assert before == frozenset(ids)
        assert after == frozenset({'acct_1', 'acct_3'})

    def test_load_settings_applies_persisted_preferences(self, privacy_gate):
        privacy_gate.load_settings({'acct_2': PrivacySettings(share_aggregates=False)})

        assert privacy_gate.eligible_accounts(['acct_1', 'acct_2']) == frozenset({'acct_1'})

    def test_newer_in_memory_opt_out_survives_reload(self, privacy_gate):
        privacy_gate.update_settings(
            'acct_1', False, updated_at=datetime(2026, 3, 10, tzinfo=timezone.utc),
        )

        privacy_gate.load_settings({
            'acct_1': PrivacySettings(
                share_aggregates=True, updated_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
            ),
        })

        assert privacy_gate.is_eligible('acct_1') is False

    def test_direct_opt_out_survives_reload_without_timestamp(self, privacy_gate):
        privacy_gate.opt_out('acct_1')

        privacy_gate.load_settings({'acct_1': PrivacySettings(share_aggregates=True)})

        assert privacy_gate.is_eligible('acct_1') is False

    def test_newer_persisted_setting_replaces_cache(self, privacy_gate):
        privacy_gate.update_settings(
            'acct_1', False, updated_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

        privacy_gate.load_settings({
            'acct_1': PrivacySettings(
                share_aggregates=True, updated_at=datetime(2026, 3, 10, tzinfo=timezone.utc),
            ),
        })

        assert privacy_gate.is_eligible('acct_1') is True

    def test_reset_forgets_settings(self, privacy_gate):
        privacy_gate.opt_out('acct_1')
        privacy_gate.reset()

        assert privacy_gate.is_eligible('acct_1') is True

    def test_concurrent_updates_leave_consistent_state(self, privacy_gate):
        ids = [f'acct_{i}' for i in range(50)]

        threads = [
            threading.Thread(target=privacy_gate.opt_out, args=(account_id,))
            for account_id in ids[::2]
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert privacy_gate.eligible_accounts(ids) == frozenset(ids[1::2])


class TestOptOutScope:
    """Opting out only affects cross-account aggregation."""

    def test_own_patterns_unaffected(self, privacy_gate, make_outcome, now):
        outcomes = [make_outcome(cpa_delta_pct=8.0), make_outcome(cpa_delta_pct=-1.0)]
        before = aggregate_account_patterns(outcomes, now)

        privacy_gate.opt_out('acct_1')

        assert aggregate_account_patterns(outcomes, now) == before

    def test_opted_out_account_leaves_cohort(self, privacy_gate, make_pattern):
        ids = [f'acct_{i:02d}' for i in range(10)]
        patterns = {a: [make_pattern(a)] for a in ids}

        assert len(aggregate_cross_account(patterns, privacy_gate.eligible_accounts(ids))) == 1

        privacy_gate.opt_out(ids[3])

        assert aggregate_cross_account(patterns, privacy_gate.eligible_accounts(ids)) == []

    def test_snapshot_taken_before_opt_out_is_unchanged(self, privacy_gate):
        snapshot = privacy_gate.eligible_accounts(['acct_1'])

        privacy_gate.opt_out('acct_1')

        assert 'acct_1' in snapshot
