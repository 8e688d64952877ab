"""
Cross-Account Aggregator Test Module

Covers athena/services/cross_account.py:
- Cohort floor of 10 distinct accounts, never lowered by callers
- Sample-size weighted means
- Eligibility snapshot filtering and anonymity of outputs
- Vertical grouping
- Blending cohort patterns with an account's own patterns
"""

import logging

import pytest

from athena.models import (
    CrossAccountPattern,
    PatternSource,
    RecommendationType,
    SignificanceFilter,
)
from athena.services.cross_account import (
    MIN_COHORT_FLOOR,
    aggregate_cross_account,
    blend_with_cross_account,
    effective_min_cohort,
)


def accounts(n: int, prefix: str = 'acct'):
    return [f'{prefix}_{i:02d}' for i in range(n)]


@pytest.mark.privacy
class TestCohortFloor:

    def test_nine_accounts_are_suppressed(self, make_pattern):
        ids = accounts(9)
        patterns = {a: [make_pattern(a)] for a in ids}

        assert aggregate_cross_account(patterns, frozenset(ids)) == []

    def test_tenth_account_reveals_the_group(self, make_pattern):
        ids = accounts(10)
        patterns = {a: [make_pattern(a)] for a in ids}

        [result] = aggregate_cross_account(patterns, frozenset(ids))

        assert result.account_count == 10
        assert result.total_sample_size == 50

    def test_lower_request_is_raised_to_floor(self, make_pattern, caplog):
        ids = accounts(5)
        patterns = {a: [make_pattern(a)] for a in ids}

        with caplog.at_level(logging.WARNING, logger='athena.services.cross_account'):
            result = aggregate_cross_account(patterns, frozenset(ids), min_cohort=3)

        assert result == []
        assert 'below the anonymity floor' in caplog.text

    def test_higher_request_is_honored(self, make_pattern):
        ids = accounts(12)
        patterns = {a: [make_pattern(a)] for a in ids}

        assert aggregate_cross_account(patterns, frozenset(ids), min_cohort=15) == []

    @pytest.mark.parametrize('requested,effective', [
        (None, MIN_COHORT_FLOOR),
        (0, MIN_COHORT_FLOOR),
        (9, MIN_COHORT_FLOOR),
        (10, 10),
        (25, 25),
    ])
    def test_effective_min_cohort(self, requested, effective):
        assert effective_min_cohort(requested) == effective

    def test_settings_cannot_lower_floor(self, monkeypatch):
        monkeypatch.setenv('MIN_COHORT', '2')

        assert effective_min_cohort() == MIN_COHORT_FLOOR

    def test_zero_sample_patterns_do_not_count_as_accounts(self, make_pattern):
        ids = accounts(10)
        patterns = {a: [make_pattern(a)] for a in ids[:9]}
        patterns[ids[9]] = [make_pattern(ids[9], sample_size=0)]

        assert aggregate_cross_account(patterns, frozenset(ids)) == []


class TestWeightedMeans:

    def test_means_are_weighted_by_sample_size(self, make_pattern):
        ids = accounts(10)
        patterns = {ids[0]: [make_pattern(ids[0], sample_size=1, success_rate=100.0)]}
        patterns.update({
            a: [make_pattern(a, sample_size=11, success_rate=0.0)] for a in ids[1:]
        })

        [result] = aggregate_cross_account(patterns, frozenset(ids))

        assert result.total_sample_size == 100
        assert result.avg_success_rate == pytest.approx(1.0)

    def test_cpa_mean_skips_missing_values(self, make_pattern):
        ids = accounts(10)
        patterns = {
            a: [make_pattern(a, sample_size=2, avg_cpa_improvement=6.0)] for a in ids[:5]
        }
        patterns.update({
            a: [make_pattern(a, sample_size=2, avg_cpa_improvement=None)] for a in ids[5:]
        })

        [result] = aggregate_cross_account(patterns, frozenset(ids))

        assert result.account_count == 10
        assert result.avg_cpa_improvement == pytest.approx(6.0)


@pytest.mark.privacy
class TestEligibility:

    def test_ineligible_accounts_are_ignored(self, make_pattern):
        ids = accounts(11)
        patterns = {a: [make_pattern(a, sample_size=3)] for a in ids}
        eligible = frozenset(ids[:9])

        assert aggregate_cross_account(patterns, eligible) == []

    def test_opted_out_samples_never_reach_totals(self, make_pattern):
        ids = accounts(11)
        patterns = {a: [make_pattern(a, sample_size=3)] for a in ids}
        patterns[ids[10]] = [make_pattern(ids[10], sample_size=500, success_rate=0.0)]
        eligible = frozenset(ids[:10])

        [result] = aggregate_cross_account(patterns, eligible)

        assert result.total_sample_size == 30
        assert result.avg_success_rate == pytest.approx(make_pattern(ids[0]).success_rate)

    def test_pattern_filed_under_wrong_account_is_skipped(self, make_pattern):
        ids = accounts(10)
        patterns = {a: [make_pattern(a)] for a in ids}
        patterns[ids[0]] = [make_pattern('someone_else')]

        assert aggregate_cross_account(patterns, frozenset(ids)) == []

    def test_output_carries_no_account_ids(self, make_pattern):
        ids = accounts(10)
        patterns = {a: [make_pattern(a)] for a in ids}

        [result] = aggregate_cross_account(patterns, frozenset(ids))
        dumped = result.model_dump_json()

        assert not any(a in dumped for a in ids)


class TestVerticals:

    def test_groups_split_by_vertical(self, make_pattern):
        health = accounts(10, 'health')
        solar = accounts(6, 'solar')
        ids = health + solar
        patterns = {a: [make_pattern(a)] for a in ids}
        verticals = {**{a: 'health' for a in health}, **{a: 'solar' for a in solar}}

        results = aggregate_cross_account(patterns, frozenset(ids), verticals=verticals)

        assert [(r.vertical, r.account_count) for r in results] == [('health', 10)]

    def test_without_verticals_all_accounts_pool(self, make_pattern):
        ids = accounts(6, 'health') + accounts(6, 'solar')
        patterns = {a: [make_pattern(a)] for a in ids}

        [result] = aggregate_cross_account(patterns, frozenset(ids))

        assert result.vertical is None
        assert result.account_count == 12

    def test_results_sorted_by_type(self, make_pattern):
        ids = accounts(10)
        patterns = {
            a: [
                make_pattern(a, RecommendationType.PROOF_ADDITION),
                make_pattern(a, RecommendationType.CTA_CLARITY),
            ]
            for a in ids
        }

        results = aggregate_cross_account(patterns, frozenset(ids))

        assert [r.recommendation_type for r in results] == [
            RecommendationType.CTA_CLARITY,
            RecommendationType.PROOF_ADDITION,
        ]


class TestBlend:

    def cross(self, rec_type=RecommendationType.OFFER_TIMING, **overrides):
        data = {
            'recommendation_type': rec_type,
            'account_count': 14,
            'total_sample_size': 80,
            'avg_success_rate': 55.0,
            'avg_cpa_improvement': 4.0,
        }
        data.update(overrides)
        return CrossAccountPattern(**data)

    def test_actionable_local_pattern_wins(self, make_pattern):
        local = [make_pattern('acct_1', success_rate=80.0)]

        [insight] = blend_with_cross_account(local, [self.cross()])

        assert insight.source == PatternSource.ACCOUNT
        assert insight.success_rate == pytest.approx(80.0)
        assert insight.account_count is None

    def test_thin_local_history_falls_back_to_cohort(self, make_pattern):
        local = [make_pattern('acct_1', sample_size=1, success_rate=100.0)]

        [insight] = blend_with_cross_account(local, [self.cross()])

        assert insight.source == PatternSource.CROSS_ACCOUNT
        assert insight.account_count == 14
        assert insight.sample_size == 80

    def test_one_insight_per_type(self, make_pattern):
        local = [make_pattern('acct_1', RecommendationType.CTA_CLARITY)]
        cross = [
            self.cross(vertical='health', account_count=10),
            self.cross(vertical='solar', account_count=20, avg_success_rate=40.0),
        ]

        insights = blend_with_cross_account(local, cross)

        assert [(i.recommendation_type, i.source) for i in insights] == [
            (RecommendationType.CTA_CLARITY, PatternSource.ACCOUNT),
            (RecommendationType.OFFER_TIMING, PatternSource.CROSS_ACCOUNT),
        ]
        assert insights[1].success_rate == pytest.approx(40.0)

    def test_custom_significance(self, make_pattern):
        local = [make_pattern('acct_1', sample_size=1, success_rate=100.0)]
        lenient = SignificanceFilter(min_sample_size=1)

        [insight] = blend_with_cross_account(local, [self.cross()], lenient)

        assert insight.source == PatternSource.ACCOUNT
