"""
Parameterized SQL queries for the gating and learning repository.

All queries use asyncpg positional placeholders ($1, $2, ...) and are
executed by athena.services.repository through the helpers in
athena.core.database.

Tables:
    scoring_gates: Per-ad delivery/conversion counters and data-quality
                   fractions (one row per account + ad)
    recommendations: Tracked recommendations and their measured outcomes
    profiles: Account profile, including the share_aggregates preference
    monthly_learnings: Persisted monthly summaries, unique per
                       (user_id, month)

Column mapping notes:
    - ios_traffic_percent / modeled_conversion_percent are stored as
      fractions in [0, 1] despite their names
    - outcome_cpa_change is signed with positive meaning CPA went down
    - outcome_measured_at is the outcome's resolution time
"""


def get_metric_snapshot_query() -> str:
    """
    Generate SQL to read one ad's current metric snapshot.

    Age is computed in the database from first_seen_at so the repository
    never reads the local clock.

    Parameters:
        $1: meta_ad_id (text)

    Returns:
        str: Query returning at most one row with MetricSnapshot columns.
    """
    query = """
    SELECT
        sg.meta_ad_id AS ad_id,
        EXTRACT(EPOCH FROM (NOW() - sg.first_seen_at)) / 3600.0 AS age_hours,
        sg.total_impressions AS impressions,
        sg.total_conversions AS conversions,
        sg.ios_traffic_percent AS ios_traffic_fraction,
        sg.modeled_conversion_percent AS modeled_conversion_fraction,
        COALESCE(sg.attribution_mismatch, FALSE) AS attribution_mismatch,
        sg.attribution_window AS user_attribution_window,
        sg.platform_attribution_window,
        sg.total_spend AS spend
    FROM scoring_gates sg
    WHERE sg.meta_ad_id = $1
    ORDER BY sg.updated_at DESC
    LIMIT 1
    """
    return query


def get_outcome_records_query(only_followed: bool = False) -> str:
    """
    Generate SQL to read an account's recommendation outcome history.

    Args:
        only_followed: Restrict to followed recommendations. Monthly
            summaries need every status; pattern aggregation only needs
            followed rows.

    Parameters:
        $1: user_id (uuid)

    Returns:
        str: Query returning rows shaped like OutcomeRecord, oldest first.
    """
    status_filter = "AND r.status = 'followed'" if only_followed else ""

    query = f"""
    SELECT
        r.id::text AS recommendation_id,
        r.user_id::text AS account_id,
        r.recommendation_type,
        r.status,
        r.created_at,
        r.followed_at,
        r.outcome_measured_at AS resolved_at,
        r.outcome_cpa_change AS cpa_delta_pct,
        r.outcome_roas_change AS roas_delta_pct,
        r.outcome_verdict AS verdict,
        r.recommendation_text
    FROM recommendations r
    WHERE r.user_id = $1::uuid
        {status_filter}
    ORDER BY r.created_at ASC, r.id ASC
    """
    return query


def get_privacy_settings_query() -> str:
    """
    Generate SQL to read sharing preferences for a batch of accounts.

    Parameters:
        $1: account ids (text[])

    Returns:
        str: Query returning (account_id, share_aggregates, updated_at) rows.
             Accounts without a profile row are absent.
    """
    query = """
    SELECT
        p.id::text AS account_id,
        COALESCE(p.share_aggregates, TRUE) AS share_aggregates,
        p.share_aggregates_updated_at AS updated_at
    FROM profiles p
    WHERE p.id::text = ANY($1::text[])
    """
    return query


def get_privacy_update_query() -> str:
    """
    Generate SQL to persist an explicit sharing preference change.

    Parameters:
        $1: account id (uuid)
        $2: share_aggregates (boolean)
        $3: updated_at (timestamptz)
    """
    query = """
    UPDATE profiles
    SET
        share_aggregates = $2,
        share_aggregates_updated_at = $3
    WHERE id = $1::uuid
    """
    return query


def get_summary_exists_query() -> str:
    """
    Generate SQL to check whether a monthly summary was already generated.

    Parameters:
        $1: user_id (uuid)
        $2: month ('YYYY-MM')
    """
    query = """
    SELECT 1
    FROM monthly_learnings
    WHERE user_id = $1::uuid
        AND month = $2
    LIMIT 1
    """
    return query


def get_monthly_summary_upsert_query() -> str:
    """
    Generate SQL to insert or refresh a monthly summary.

    Uses ON CONFLICT (user_id, month) so regenerating a month replaces the
    previous row instead of duplicating it.

    Parameters:
        $1: user_id (uuid)
        $2: month ('YYYY-MM')
        $3: recommendations_generated
        $4: recommendations_followed
        $5: recommendations_ignored
        $6: outcomes_measured
        $7: follow_rate
        $8: success_rate
        $9: avg_cpa_improvement
        $10: top_performing_types (jsonb text)
        $11: insights (jsonb text)
        $12: generated_at
    """
    query = """
    INSERT INTO monthly_learnings (
        user_id,
        month,
        recommendations_generated,
        recommendations_followed,
        recommendations_ignored,
        outcomes_measured,
        follow_rate,
        success_rate,
        avg_cpa_improvement,
        top_performing_types,
        insights,
        generated_at
    )
    VALUES (
        $1::uuid, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11::jsonb, $12
    )
    ON CONFLICT (user_id, month) DO UPDATE SET
        recommendations_generated = EXCLUDED.recommendations_generated,
        recommendations_followed = EXCLUDED.recommendations_followed,
        recommendations_ignored = EXCLUDED.recommendations_ignored,
        outcomes_measured = EXCLUDED.outcomes_measured,
        follow_rate = EXCLUDED.follow_rate,
        success_rate = EXCLUDED.success_rate,
        avg_cpa_improvement = EXCLUDED.avg_cpa_improvement,
        top_performing_types = EXCLUDED.top_performing_types,
        insights = EXCLUDED.insights,
        generated_at = EXCLUDED.generated_at
    """
    return query
