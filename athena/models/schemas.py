"""
Pydantic models for the ATHENA confidence gating and learning engine.

Input models (MetricSnapshot, OutcomeRecord) are frozen and validate at
construction: negative counts, fractions outside [0, 1] and non-finite
numbers are rejected, never clamped. Boundary code should build them through
`from_payload`, which reports failures as InvalidInputError.

Result models (GateStatus, AccountPattern, CrossAccountPattern,
MonthlySummary) are frozen as well so they can be shared across concurrent
readers without copying.

All models use Pydantic v2 syntax.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from athena.core.config import Settings, get_settings
from athena.core.errors import InvalidInputError
from athena.models.enums import (
    ConfidenceLevel,
    ConversionLevel,
    GateDecisionType,
    ImpressionLevel,
    OutcomeVerdict,
    PatternSource,
    RecommendationSource,
    RecommendationStatus,
    RecommendationType,
    SharingState,
)


ModelT = TypeVar('ModelT', bound=BaseModel)

_YEAR_MONTH_PATTERN = re.compile(r'^(\d{4})-(\d{2})$')


def _validate_payload(model_cls: Type[ModelT], payload: Dict[str, Any]) -> ModelT:
    """Validate a raw payload, translating pydantic errors to InvalidInputError."""
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid {model_cls.__name__}: {exc.error_count()} validation error(s)",
            errors=exc.errors(include_url=False),
        ) from exc


def _check_same_tz_kind(first: datetime, second: datetime) -> None:
    if (first.tzinfo is None) != (second.tzinfo is None):
        raise ValueError("Cannot mix naive and timezone-aware timestamps")


# =============================================================================
# Threshold Configuration
# =============================================================================


class GateThresholds(BaseModel):
    """
    Thresholds used by the gate evaluator.

    Defaults match athena.core.config.Settings. Build from the environment
    with `GateThresholds.from_settings()` or override per call.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "min_age_hours": 24.0,
                "impressions_medium": 1000,
                "impressions_high": 10000,
                "conversions_low": 1,
                "conversions_medium": 10,
                "conversions_high": 30,
                "ios_penalty_threshold": 0.30,
                "min_spend": 1000.0,
            }
        }
    )

    min_age_hours: float = Field(default=24.0, ge=0.0, allow_inf_nan=False)
    impressions_medium: int = Field(default=1000, ge=0)
    impressions_high: int = Field(default=10000, ge=0)
    conversions_low: int = Field(default=1, ge=0)
    conversions_medium: int = Field(default=10, ge=0)
    conversions_high: int = Field(default=30, ge=0)
    ios_penalty_threshold: float = Field(default=0.30, ge=0.0, le=1.0)
    ios_critical_threshold: float = Field(default=0.60, ge=0.0, le=1.0)
    modeled_conversion_penalty_threshold: float = Field(default=0.30, ge=0.0, le=1.0)
    min_spend: float = Field(default=1000.0, ge=0.0, allow_inf_nan=False)

    @model_validator(mode='after')
    def check_breakpoints_ascending(self) -> 'GateThresholds':
        if not self.impressions_medium < self.impressions_high:
            raise ValueError("impressions_medium must be below impressions_high")
        if not self.conversions_low < self.conversions_medium < self.conversions_high:
            raise ValueError(
                "conversion breakpoints must be strictly ascending (low < medium < high)"
            )
        if self.ios_critical_threshold < self.ios_penalty_threshold:
            raise ValueError("ios_critical_threshold must not be below ios_penalty_threshold")
        return self

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'GateThresholds':
        settings = settings or get_settings()
        return cls(
            min_age_hours=settings.min_age_hours,
            impressions_medium=settings.impressions_medium,
            impressions_high=settings.impressions_high,
            conversions_low=settings.conversions_low,
            conversions_medium=settings.conversions_medium,
            conversions_high=settings.conversions_high,
            ios_penalty_threshold=settings.ios_penalty_threshold,
            ios_critical_threshold=settings.ios_critical_threshold,
            modeled_conversion_penalty_threshold=settings.modeled_conversion_penalty_threshold,
            min_spend=settings.min_spend,
        )


class SignificanceFilter(BaseModel):
    """
    Consumer-side rule for treating an AccountPattern as actionable.

    A pattern is actionable when sample_size >= min_sample_size and
    recency_days < max_recency_days. The aggregator never applies this
    itself, so callers can vary it.
    """
    model_config = ConfigDict(frozen=True)

    min_sample_size: int = Field(default=3, ge=1)
    max_recency_days: int = Field(default=60, ge=1)

    def is_actionable(self, pattern: 'AccountPattern') -> bool:
        if pattern.sample_size < self.min_sample_size:
            return False
        if pattern.recency_days is None:
            return False
        return pattern.recency_days < self.max_recency_days

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'SignificanceFilter':
        settings = settings or get_settings()
        return cls(
            min_sample_size=settings.significance_min_sample_size,
            max_recency_days=settings.significance_max_recency_days,
        )


# =============================================================================
# Metric Snapshot (gate input)
# =============================================================================


class MetricSnapshot(BaseModel):
    """
    Read-only view of an ad's current delivery and conversion metrics.

    Produced fresh for every evaluation by the ads-metrics collaborator.
    `attribution_mismatch` is set when pixel and platform conversion counts
    disagree beyond tolerance; differing attribution windows raise the same
    block (see `has_attribution_mismatch`).
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "ad_id": "2385012345",
                "age_hours": 48.0,
                "impressions": 15000,
                "conversions": 12,
                "ios_traffic_fraction": 0.1,
                "attribution_mismatch": False,
                "spend": 500.0,
            }
        }
    )

    ad_id: Optional[str] = Field(default=None, description="Ad identifier")
    age_hours: float = Field(
        ...,
        ge=0.0,
        allow_inf_nan=False,
        description="Hours since the ad started delivering"
    )
    impressions: int = Field(..., ge=0, description="Lifetime impressions")
    conversions: int = Field(..., ge=0, description="Lifetime conversions")
    ios_traffic_fraction: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Share of traffic attributed to iOS devices"
    )
    modeled_conversion_fraction: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Share of conversions that are modeled rather than observed"
    )
    attribution_mismatch: bool = Field(
        default=False,
        description="Pixel vs platform conversion counts disagree beyond tolerance"
    )
    user_attribution_window: Optional[str] = Field(
        default=None,
        description="Attribution window configured by the account (e.g. 7d_click)"
    )
    platform_attribution_window: Optional[str] = Field(
        default=None,
        description="Attribution window the ad platform reports with"
    )
    spend: float = Field(
        ...,
        ge=0.0,
        allow_inf_nan=False,
        description="Lifetime spend in account currency"
    )

    @property
    def attribution_windows_differ(self) -> bool:
        return bool(
            self.user_attribution_window
            and self.platform_attribution_window
            and self.user_attribution_window != self.platform_attribution_window
        )

    @property
    def has_attribution_mismatch(self) -> bool:
        return self.attribution_mismatch or self.attribution_windows_differ

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'MetricSnapshot':
        return _validate_payload(cls, payload)


# =============================================================================
# Gate Status (gate output)
# =============================================================================


class AgeGate(BaseModel):
    """Age sub-gate: passes once the ad has delivered for min_age_hours."""
    model_config = ConfigDict(frozen=True)

    passed: bool
    hours_remaining: Optional[float] = None


class ImpressionsGate(BaseModel):
    """Impressions sub-gate with a three-step level."""
    model_config = ConfigDict(frozen=True)

    level: ImpressionLevel
    current: int = Field(..., ge=0)
    next_threshold: Optional[int] = None


class ConversionsGate(BaseModel):
    """Conversions sub-gate with a four-step level."""
    model_config = ConfigDict(frozen=True)

    level: ConversionLevel
    current: int = Field(..., ge=0)
    next_threshold: Optional[int] = None


class IosTrafficGate(BaseModel):
    """iOS traffic caveat: never blocks, flags attribution unreliability."""
    model_config = ConfigDict(frozen=True)

    penalized: bool
    fraction: Optional[float] = None
    data_missing: bool = False


class ModeledConversionsGate(BaseModel):
    """Modeled conversion caveat: never blocks, caps conversion confidence."""
    model_config = ConfigDict(frozen=True)

    penalized: bool
    fraction: Optional[float] = None
    data_missing: bool = False


class AttributionMismatchGate(BaseModel):
    """Attribution trust gate: when blocked, conversion scoring is off."""
    model_config = ConfigDict(frozen=True)

    blocked: bool
    message: Optional[str] = None


class SpendGate(BaseModel):
    """Spend sub-gate required for recommendations."""
    model_config = ConfigDict(frozen=True)

    passed: bool
    amount_remaining: Optional[float] = None


class GateStatus(BaseModel):
    """
    Result of one gate evaluation.

    Each derived boolean is true iff every sub-gate it depends on passes:
    - can_score_delivery = age passed AND impressions level != low
    - can_score_conversion = conversions level != insufficient AND NOT mismatch
    - can_show_recommendations = age passed AND spend passed

    gate_messages explains blocking gates only, in fixed priority order; it is
    empty iff all three booleans are true. Non-blocking notices (iOS and
    modeled-conversion penalties) go to caveats.
    """
    model_config = ConfigDict(frozen=True)

    age: AgeGate
    impressions: ImpressionsGate
    conversions: ConversionsGate
    ios_traffic: IosTrafficGate
    modeled_conversions: ModeledConversionsGate
    attribution_mismatch: AttributionMismatchGate
    spend: SpendGate

    can_score_delivery: bool
    can_score_conversion: bool
    can_show_recommendations: bool

    delivery_confidence_max: ImpressionLevel
    conversion_confidence_max: ConversionLevel

    gate_messages: List[str] = Field(default_factory=list)
    caveats: List[str] = Field(default_factory=list)
    snapshot_missing: bool = False


# =============================================================================
# Outcome Records and Patterns
# =============================================================================


class OutcomeRecord(BaseModel):
    """
    One tracked recommendation and, once measured, its CPA outcome.

    cpa_delta_pct is signed with positive meaning CPA went down (improvement).
    A record is resolved when it was followed and carries both resolved_at
    and cpa_delta_pct; only resolved records feed patterns and means.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "recommendation_id": "rec_001",
                "account_id": "acct_123",
                "recommendation_type": "offer_timing",
                "status": "followed",
                "created_at": "2026-03-02T10:00:00Z",
                "followed_at": "2026-03-03T09:00:00Z",
                "resolved_at": "2026-03-12T09:00:00Z",
                "cpa_delta_pct": 12.5,
            }
        }
    )

    recommendation_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    recommendation_type: RecommendationType
    status: RecommendationStatus = RecommendationStatus.PENDING
    created_at: datetime
    followed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    cpa_delta_pct: Optional[float] = Field(default=None, allow_inf_nan=False)
    roas_delta_pct: Optional[float] = Field(default=None, allow_inf_nan=False)
    verdict: Optional[OutcomeVerdict] = None
    recommendation_text: Optional[str] = None

    @model_validator(mode='after')
    def check_timeline(self) -> 'OutcomeRecord':
        if self.resolved_at is not None:
            _check_same_tz_kind(self.created_at, self.resolved_at)
            if self.resolved_at < self.created_at:
                raise ValueError("resolved_at cannot precede created_at")
        if self.followed_at is not None:
            _check_same_tz_kind(self.created_at, self.followed_at)
            if self.followed_at < self.created_at:
                raise ValueError("followed_at cannot precede created_at")
        return self

    @property
    def is_resolved(self) -> bool:
        return (
            self.status == RecommendationStatus.FOLLOWED
            and self.resolved_at is not None
            and self.cpa_delta_pct is not None
        )

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'OutcomeRecord':
        return _validate_payload(cls, payload)


class AccountPattern(BaseModel):
    """
    Aggregated outcome statistics for one (account, recommendation type).

    success_rate is in [0, 100] and is None iff sample_size is 0.
    """
    model_config = ConfigDict(frozen=True)

    account_id: str
    recommendation_type: RecommendationType
    sample_size: int = Field(..., ge=0)
    successes: int = Field(default=0, ge=0)
    success_rate: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    avg_cpa_improvement: Optional[float] = None
    recency_days: Optional[int] = Field(default=None, ge=0)
    last_resolved_at: Optional[datetime] = None

    @model_validator(mode='after')
    def check_rate_matches_sample(self) -> 'AccountPattern':
        if self.sample_size == 0 and self.success_rate is not None:
            raise ValueError("success_rate must be omitted when sample_size is 0")
        if self.sample_size > 0 and self.success_rate is None:
            raise ValueError("success_rate is required when sample_size > 0")
        if self.successes > self.sample_size:
            raise ValueError("successes cannot exceed sample_size")
        return self


class CrossAccountPattern(BaseModel):
    """
    Anonymous pattern merged across opted-in accounts.

    Only materialized when account_count reaches the cohort floor. Carries no
    account identifiers.
    """
    model_config = ConfigDict(frozen=True)

    recommendation_type: RecommendationType
    vertical: Optional[str] = None
    account_count: int = Field(..., ge=0)
    total_sample_size: int = Field(..., ge=0)
    avg_success_rate: float = Field(..., ge=0.0, le=100.0)
    avg_cpa_improvement: Optional[float] = None


class PatternInsight(BaseModel):
    """A pattern shown to one account, from its own history or the cohort."""
    model_config = ConfigDict(frozen=True)

    recommendation_type: RecommendationType
    source: PatternSource
    success_rate: float = Field(..., ge=0.0, le=100.0)
    sample_size: int = Field(..., ge=0)
    avg_cpa_improvement: Optional[float] = None
    recency_days: Optional[int] = None
    account_count: Optional[int] = None


# =============================================================================
# Monthly Summary
# =============================================================================


class YearMonth(BaseModel):
    """A calendar month, rendered as 'YYYY-MM'."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9998)
    month: int = Field(..., ge=1, le=12)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def contains(self, moment: datetime) -> bool:
        return moment.year == self.year and moment.month == self.month

    def start(self, tzinfo=None) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=tzinfo)

    def next(self) -> 'YearMonth':
        if self.month == 12:
            return YearMonth(year=self.year + 1, month=1)
        return YearMonth(year=self.year, month=self.month + 1)

    def previous(self) -> 'YearMonth':
        if self.month == 1:
            return YearMonth(year=self.year - 1, month=12)
        return YearMonth(year=self.year, month=self.month - 1)

    @classmethod
    def parse(cls, value: str) -> 'YearMonth':
        match = _YEAR_MONTH_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise InvalidInputError(f"Month must be formatted YYYY-MM, got {value!r}")
        try:
            return cls(year=int(match.group(1)), month=int(match.group(2)))
        except ValidationError as exc:
            raise InvalidInputError(
                f"Month out of range: {value!r}",
                errors=exc.errors(include_url=False),
            ) from exc

    @classmethod
    def of(cls, moment: datetime) -> 'YearMonth':
        return cls(year=moment.year, month=moment.month)


class MonthlySummary(BaseModel):
    """
    One account's recommendation outcomes for one calendar month.

    success_rate and avg_cpa_improvement cover resolved outcomes only and are
    None when nothing resolved. Insights are rendered from fixed templates.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "account_id": "acct_123",
                "month": "2026-03",
                "recommendations_generated": 14,
                "recommendations_followed": 6,
                "recommendations_ignored": 5,
                "outcomes_measured": 5,
                "follow_rate": 42.86,
                "success_rate": 60.0,
                "avg_cpa_improvement": 7.4,
                "insights": ["Great success rate (60%). Your recommendations are effective."],
            }
        }
    )

    account_id: Optional[str] = None
    month: str = Field(..., pattern=r'^\d{4}-\d{2}$')
    recommendations_generated: int = Field(..., ge=0)
    recommendations_followed: int = Field(..., ge=0)
    recommendations_ignored: int = Field(default=0, ge=0)
    outcomes_measured: int = Field(default=0, ge=0)
    follow_rate: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    success_rate: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    avg_cpa_improvement: Optional[float] = None
    top_performing_types: List[AccountPattern] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    generated_at: Optional[datetime] = None


# =============================================================================
# Privacy
# =============================================================================


class PrivacySettings(BaseModel):
    """
    Per-account cross-account sharing preference.

    Created implicitly with share_aggregates=True on first read; only an
    explicit update changes it.
    """
    model_config = ConfigDict(frozen=True)

    share_aggregates: bool = True
    updated_at: Optional[datetime] = None

    @property
    def state(self) -> SharingState:
        return SharingState.OPTED_IN if self.share_aggregates else SharingState.OPTED_OUT


# =============================================================================
# Recommendations
# =============================================================================


class RecommendationDraft(BaseModel):
    """
    A proposed recommendation before it is tracked.

    Fields default to empty so partially filled drafts can be validated with
    validate_recommendation() and get a full error list back.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    source_system: Optional[RecommendationSource] = None
    recommendation_type: Optional[RecommendationType] = None
    recommendation_text: str = ""
    what_to_change: str = ""
    target_range: str = ""
    observable_gap: str = ""
    metric_to_watch: str = ""
    run_duration_days: Optional[int] = None
    confidence: Optional[ConfidenceLevel] = None


class RecommendationValidation(BaseModel):
    """Result of validate_recommendation()."""
    valid: bool
    errors: List[str] = Field(default_factory=list)


class RecommendationTemplate(BaseModel):
    """Specificity template for one recommendation type."""
    model_config = ConfigDict(frozen=True)

    source_system: RecommendationSource
    target_range_template: str
    metric_to_watch: str
    run_duration_days: int = Field(..., ge=3, le=30)
    what_to_change_example: str
    observable_gap_example: str


class RankedRecommendation(BaseModel):
    """A draft with its confidence adjusted by the account's own history."""
    recommendation: RecommendationDraft
    adjusted_confidence: ConfidenceLevel
    account_success_rate: Optional[float] = None
    boost_reason: Optional[str] = None
    demote_reason: Optional[str] = None


# =============================================================================
# Outcome Measurement
# =============================================================================


class PeriodMetrics(BaseModel):
    """Spend/conversion/revenue totals for a before or after window."""
    model_config = ConfigDict(frozen=True)

    spend: float = Field(..., ge=0.0, allow_inf_nan=False)
    conversions: int = Field(..., ge=0)
    revenue: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
    impressions: int = Field(default=0, ge=0)


class OutcomeMeasurement(BaseModel):
    """Verdict and deltas from comparing a before and an after window."""
    model_config = ConfigDict(frozen=True)

    verdict: OutcomeVerdict
    cpa_change_pct: Optional[float] = None
    roas_change_pct: Optional[float] = None
    conversions: int = Field(..., ge=0)
    confidence: ConversionLevel


# =============================================================================
# Audit
# =============================================================================


class GateAuditEntry(BaseModel):
    """One gate decision written to the audit log."""
    model_config = ConfigDict(frozen=True)

    trace_id: str
    account_id: str
    ad_id: Optional[str] = None
    gate_type: GateDecisionType
    systems_activated: List[RecommendationSource] = Field(default_factory=list)
    blocked: bool
    blocked_reason: Optional[str] = None
    logged_at: datetime
