"""
Confidence Gate Evaluator Service

Decides, for one ad's metric snapshot, whether enough data exists to trust a
delivery score, a conversion score, or a recommendation. Evaluation is pure
and deterministic: the same snapshot and thresholds always produce the same
GateStatus, and nothing here performs I/O or reads the clock.

Gates:
- Age: the ad must have delivered for min_age_hours (24h)
- Impressions: low (<1k) / medium (1k-10k) / high (10k+)
- Conversions: insufficient (<1) / low (1-9) / medium (10-29) / high (30+)
- Attribution mismatch: pixel vs platform disagreement blocks conversion scoring
- Spend: min_spend before recommendations are shown
- iOS traffic and modeled conversions: caveats that cap conversion
  confidence but never flip a boolean

Derived booleans:
- can_score_delivery = age passed AND impressions level != low
- can_score_conversion = conversions level != insufficient AND NOT mismatch
- can_show_recommendations = age passed AND spend passed

gate_messages lists one notice per failing gate, ordered by GATE_MESSAGE_ORDER,
and is empty iff all three booleans are true.

Insufficient data is a normal result of this module, never an exception.
"""

import math
from typing import List, Optional, Tuple, Union

from athena.models.enums import ConversionLevel, GateName, ImpressionLevel
from athena.models.schemas import (
    AgeGate,
    AttributionMismatchGate,
    ConversionsGate,
    GateStatus,
    GateThresholds,
    ImpressionsGate,
    IosTrafficGate,
    MetricSnapshot,
    ModeledConversionsGate,
    SpendGate,
)


# =============================================================================
# Module Constants
# =============================================================================

# Priority order for gate messages; only blocking gates produce messages
GATE_MESSAGE_ORDER: Tuple[GateName, ...] = (
    GateName.AGE,
    GateName.IMPRESSIONS,
    GateName.CONVERSIONS,
    GateName.ATTRIBUTION_MISMATCH,
    GateName.SPEND,
)

MISSING_SNAPSHOT_MESSAGE = "Metrics are unavailable for this ad. All gates treated as failing."

CONFIDENCE_LABELS = {
    'high': 'High',
    'medium': 'Medium',
    'low': 'Low',
    'insufficient': 'Insufficient',
}


# =============================================================================
# Level Classification
# =============================================================================


def classify_impressions(
    impressions: int,
    thresholds: GateThresholds,
) -> Tuple[ImpressionLevel, Optional[int]]:
    """
    Map an impression count to its level and the floor of the next level.

    Returns:
        Tuple of (level, next_threshold). next_threshold is None at HIGH.
    """
    if impressions >= thresholds.impressions_high:
        return ImpressionLevel.HIGH, None
    if impressions >= thresholds.impressions_medium:
        return ImpressionLevel.MEDIUM, thresholds.impressions_high
    return ImpressionLevel.LOW, thresholds.impressions_medium


def classify_conversions(
    conversions: int,
    thresholds: GateThresholds,
) -> Tuple[ConversionLevel, Optional[int]]:
    """
    Map a conversion count to its level and the floor of the next level.

    Returns:
        Tuple of (level, next_threshold). next_threshold is None at HIGH.
    """
    if conversions >= thresholds.conversions_high:
        return ConversionLevel.HIGH, None
    if conversions >= thresholds.conversions_medium:
        return ConversionLevel.MEDIUM, thresholds.conversions_high
    if conversions >= thresholds.conversions_low:
        return ConversionLevel.LOW, thresholds.conversions_medium
    return ConversionLevel.INSUFFICIENT, thresholds.conversions_low


def _cap_conversion(current: ConversionLevel, ceiling: ConversionLevel) -> ConversionLevel:
    return current if current.rank <= ceiling.rank else ceiling


# =============================================================================
# Individual Gates
# =============================================================================


def _evaluate_age(snapshot: MetricSnapshot, thresholds: GateThresholds) -> AgeGate:
    if snapshot.age_hours >= thresholds.min_age_hours:
        return AgeGate(passed=True)
    return AgeGate(
        passed=False,
        hours_remaining=thresholds.min_age_hours - snapshot.age_hours,
    )


def _evaluate_ios(snapshot: MetricSnapshot, thresholds: GateThresholds) -> IosTrafficGate:
    fraction = snapshot.ios_traffic_fraction
    if fraction is None:
        return IosTrafficGate(penalized=False, data_missing=True)
    return IosTrafficGate(
        penalized=fraction > thresholds.ios_penalty_threshold,
        fraction=fraction,
    )


def _evaluate_modeled(
    snapshot: MetricSnapshot,
    thresholds: GateThresholds,
) -> ModeledConversionsGate:
    fraction = snapshot.modeled_conversion_fraction
    if fraction is None:
        return ModeledConversionsGate(penalized=False, data_missing=True)
    return ModeledConversionsGate(
        penalized=fraction > thresholds.modeled_conversion_penalty_threshold,
        fraction=fraction,
    )


def _evaluate_attribution(snapshot: MetricSnapshot) -> AttributionMismatchGate:
    if snapshot.attribution_windows_differ:
        return AttributionMismatchGate(
            blocked=True,
            message=(
                f"Attribution window mismatch: you use \"{snapshot.user_attribution_window}\" "
                f"but the platform reports \"{snapshot.platform_attribution_window}\". "
                f"Conversion scoring is blocked."
            ),
        )
    if snapshot.attribution_mismatch:
        return AttributionMismatchGate(
            blocked=True,
            message=(
                "Pixel and platform conversion counts disagree. "
                "Conversion scoring is blocked until attribution is fixed."
            ),
        )
    return AttributionMismatchGate(blocked=False)


def _evaluate_spend(snapshot: MetricSnapshot, thresholds: GateThresholds) -> SpendGate:
    if snapshot.spend >= thresholds.min_spend:
        return SpendGate(passed=True)
    return SpendGate(passed=False, amount_remaining=thresholds.min_spend - snapshot.spend)


# =============================================================================
# Messages
# =============================================================================


def _build_messages(
    age: AgeGate,
    impressions: ImpressionsGate,
    conversions: ConversionsGate,
    attribution: AttributionMismatchGate,
    spend: SpendGate,
) -> List[str]:
    """Render one message per blocking gate in GATE_MESSAGE_ORDER."""
    by_gate = {}

    if not age.passed:
        hours = math.ceil(age.hours_remaining)
        by_gate[GateName.AGE] = f"Ad needs {hours} more hours of delivery data."

    if impressions.level == ImpressionLevel.LOW:
        remaining = impressions.next_threshold - impressions.current
        by_gate[GateName.IMPRESSIONS] = (
            f"Early signal only. Needs {remaining:,} more impressions "
            f"({impressions.next_threshold:,} total) for delivery scoring."
        )

    if conversions.level == ConversionLevel.INSUFFICIENT:
        by_gate[GateName.CONVERSIONS] = (
            f"Only {conversions.current} conversions. "
            f"Need {conversions.next_threshold}+ for any conversion signal."
        )

    if attribution.blocked:
        by_gate[GateName.ATTRIBUTION_MISMATCH] = attribution.message

    if not spend.passed:
        by_gate[GateName.SPEND] = (
            f"Need {math.ceil(spend.amount_remaining):,} more spend before recommendations."
        )

    return [by_gate[name] for name in GATE_MESSAGE_ORDER if name in by_gate]


def _build_caveats(
    ios: IosTrafficGate,
    modeled: ModeledConversionsGate,
    thresholds: GateThresholds,
) -> List[str]:
    caveats = []

    if ios.penalized:
        pct = ios.fraction * 100
        if ios.fraction > thresholds.ios_critical_threshold:
            caveats.append(
                f"High iOS traffic ({pct:.0f}%). Conversion data may be incomplete; "
                f"confidence capped at low."
            )
        else:
            caveats.append(
                f"iOS traffic is {pct:.0f}%. Conversion confidence capped at medium."
            )

    if modeled.penalized:
        caveats.append(
            f"{modeled.fraction * 100:.0f}% of conversions are modeled. Confidence reduced."
        )

    return caveats


# =============================================================================
# Public API
# =============================================================================


def evaluate_gates(
    snapshot: MetricSnapshot,
    thresholds: Optional[GateThresholds] = None,
) -> GateStatus:
    """
    Evaluate every gate for one metric snapshot.

    Args:
        snapshot: Current metrics for the ad. Already validated.
        thresholds: Gate thresholds; defaults to GateThresholds.from_settings().

    Returns:
        GateStatus with sub-gate details, derived booleans, confidence caps,
        ordered blocking messages and non-blocking caveats.
    """
    if thresholds is None:
        thresholds = GateThresholds.from_settings()

    age = _evaluate_age(snapshot, thresholds)

    impression_level, impression_next = classify_impressions(snapshot.impressions, thresholds)
    impressions = ImpressionsGate(
        level=impression_level,
        current=snapshot.impressions,
        next_threshold=impression_next,
    )

    conversion_level, conversion_next = classify_conversions(snapshot.conversions, thresholds)
    conversions = ConversionsGate(
        level=conversion_level,
        current=snapshot.conversions,
        next_threshold=conversion_next,
    )

    ios = _evaluate_ios(snapshot, thresholds)
    modeled = _evaluate_modeled(snapshot, thresholds)
    attribution = _evaluate_attribution(snapshot)
    spend = _evaluate_spend(snapshot, thresholds)

    can_score_delivery = age.passed and impression_level != ImpressionLevel.LOW
    can_score_conversion = (
        conversion_level != ConversionLevel.INSUFFICIENT and not attribution.blocked
    )
    can_show_recommendations = age.passed and spend.passed

    # Confidence caps
    delivery_cap = impression_level if can_score_delivery else ImpressionLevel.LOW

    conversion_cap = conversion_level
    if ios.penalized:
        if ios.fraction > thresholds.ios_critical_threshold:
            conversion_cap = _cap_conversion(conversion_cap, ConversionLevel.LOW)
        else:
            conversion_cap = _cap_conversion(conversion_cap, ConversionLevel.MEDIUM)
    if modeled.penalized:
        conversion_cap = _cap_conversion(conversion_cap, ConversionLevel.MEDIUM)
    if attribution.blocked:
        conversion_cap = ConversionLevel.INSUFFICIENT

    return GateStatus(
        age=age,
        impressions=impressions,
        conversions=conversions,
        ios_traffic=ios,
        modeled_conversions=modeled,
        attribution_mismatch=attribution,
        spend=spend,
        can_score_delivery=can_score_delivery,
        can_score_conversion=can_score_conversion,
        can_show_recommendations=can_show_recommendations,
        delivery_confidence_max=delivery_cap,
        conversion_confidence_max=conversion_cap,
        gate_messages=_build_messages(age, impressions, conversions, attribution, spend),
        caveats=_build_caveats(ios, modeled, thresholds),
    )


def evaluate_missing_snapshot(thresholds: Optional[GateThresholds] = None) -> GateStatus:
    """
    Fail-closed evaluation used when the metrics fetch produced nothing.

    Gates are evaluated against an all-zero snapshot and every derived
    boolean is forced false, so a zero threshold cannot open a gate. The
    unavailability notice leads gate_messages.
    """
    empty = MetricSnapshot(age_hours=0.0, impressions=0, conversions=0, spend=0.0)
    status = evaluate_gates(empty, thresholds)
    return status.model_copy(update={
        'can_score_delivery': False,
        'can_score_conversion': False,
        'can_show_recommendations': False,
        'delivery_confidence_max': ImpressionLevel.LOW,
        'conversion_confidence_max': ConversionLevel.INSUFFICIENT,
        'snapshot_missing': True,
        'gate_messages': [MISSING_SNAPSHOT_MESSAGE] + status.gate_messages,
    })


def get_gate_status_summary(status: GateStatus) -> str:
    """One-line, user-facing summary of a GateStatus."""
    if status.snapshot_missing:
        return 'Metrics unavailable.'

    if not status.can_score_delivery:
        return 'Gathering initial data...'

    if not status.can_score_conversion:
        if status.attribution_mismatch.blocked:
            return 'Delivery data available. Conversion scoring blocked by attribution mismatch.'
        return 'Delivery data available. Waiting for conversions.'

    if not status.can_show_recommendations:
        return 'Data available. Recommendations after more spend.'

    label = get_confidence_label(status.conversion_confidence_max)
    return f"{label} confidence data available."


def get_confidence_label(level: Union[ImpressionLevel, ConversionLevel, str]) -> str:
    """Display label for an impression or conversion confidence level."""
    value = level.value if isinstance(level, (ImpressionLevel, ConversionLevel)) else str(level)
    return CONFIDENCE_LABELS.get(value, 'Insufficient')
