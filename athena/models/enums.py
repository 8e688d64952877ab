"""
Enumeration definitions for the ATHENA engine.

All enums inherit from both `str` and `Enum` so they serialize cleanly through
Pydantic models. Level enums (ImpressionLevel, ConversionLevel) are closed and
ordered: use `.rank` for comparisons, never string ordering.
"""

from enum import Enum


class ImpressionLevel(str, Enum):
    """
    Impression volume level for delivery scoring.

    - low: below the medium floor (1,000 by default); delivery not scorable
    - medium: medium floor up to the high floor (10,000 by default)
    - high: at or above the high floor
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _IMPRESSION_RANKS[self]


class ConversionLevel(str, Enum):
    """
    Conversion volume level for conversion scoring.

    - insufficient: below 1 conversion; conversion not scorable
    - low: 1-9
    - medium: 10-29
    - high: 30+

    Also used as the conversion confidence cap after iOS, modeled-conversion
    and attribution penalties are applied.
    """
    INSUFFICIENT = "insufficient"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONVERSION_RANKS[self]


_IMPRESSION_RANKS = {
    ImpressionLevel.LOW: 0,
    ImpressionLevel.MEDIUM: 1,
    ImpressionLevel.HIGH: 2,
}

_CONVERSION_RANKS = {
    ConversionLevel.INSUFFICIENT: 0,
    ConversionLevel.LOW: 1,
    ConversionLevel.MEDIUM: 2,
    ConversionLevel.HIGH: 3,
}


class GateName(str, Enum):
    """
    Named sufficiency checks evaluated for every metric snapshot.

    Declaration order of the blocking gates is the order their messages
    appear in GateStatus.gate_messages.
    """
    AGE = "age"
    IMPRESSIONS = "impressions"
    CONVERSIONS = "conversions"
    ATTRIBUTION_MISMATCH = "attribution_mismatch"
    SPEND = "spend"
    IOS_TRAFFIC = "ios_traffic"
    MODELED_CONVERSIONS = "modeled_conversions"


class RecommendationType(str, Enum):
    """
    Fixed taxonomy of actionable creative/funnel changes tracked for
    outcome learning.

    Structure system: motion_timing, cut_density, text_appearance
    Narrative system: value_timing, offer_timing, cta_clarity, proof_addition,
        pricing_visibility
    Conversion system: landing_page, checkout_flow, audience_refresh
    """
    MOTION_TIMING = "motion_timing"
    CUT_DENSITY = "cut_density"
    TEXT_APPEARANCE = "text_appearance"
    VALUE_TIMING = "value_timing"
    OFFER_TIMING = "offer_timing"
    CTA_CLARITY = "cta_clarity"
    PROOF_ADDITION = "proof_addition"
    PRICING_VISIBILITY = "pricing_visibility"
    LANDING_PAGE = "landing_page"
    CHECKOUT_FLOW = "checkout_flow"
    AUDIENCE_REFRESH = "audience_refresh"


class RecommendationSource(str, Enum):
    """
    Scoring system that produced a recommendation, also used to label which
    systems a gate decision activated.
    """
    STRUCTURE = "structure"
    NARRATIVE = "narrative"
    CONVERSION = "conversion"


class RecommendationStatus(str, Enum):
    """Lifecycle status of a tracked recommendation."""
    PENDING = "pending"
    FOLLOWED = "followed"
    IGNORED = "ignored"
    PARTIAL = "partial"


class ConfidenceLevel(str, Enum):
    """Confidence attached to a recommendation."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OutcomeVerdict(str, Enum):
    """
    Measured verdict of a followed recommendation.

    - improved: CPA improved beyond the verdict threshold
    - neutral: change within the verdict threshold
    - declined: CPA worsened beyond the verdict threshold
    - insufficient_data: too few post-change conversions to judge
    """
    IMPROVED = "improved"
    NEUTRAL = "neutral"
    DECLINED = "declined"
    INSUFFICIENT_DATA = "insufficient_data"


class SharingState(str, Enum):
    """
    Cross-account sharing state of an account.

    Accounts start OPTED_IN and move between states only by explicit action.
    """
    OPTED_IN = "opted_in"
    OPTED_OUT = "opted_out"


class GateDecisionType(str, Enum):
    """Kind of decision recorded in the gate audit log."""
    SCORE_ATTEMPT = "score_attempt"
    RECOMMENDATION_GEN = "recommendation_gen"
    SYSTEM_ACTIVATION = "system_activation"
    ELIGIBILITY_CHECK = "eligibility_check"


class PatternSource(str, Enum):
    """Origin of a pattern shown to an account."""
    ACCOUNT = "account"
    CROSS_ACCOUNT = "cross_account"
