"""
Recommendation Specificity Validator

Keeps vague advice ("test a stronger offer") out of the outcome learning
loop. A recommendation is specific when it:
- is not empty
- avoids generic phrasing (stronger, better, improve, optimize, enhance,
  more engaging, more compelling)
- carries a concrete, measurable signal (a number, time offset, percentage
  or quoted copy)
- matches the signal patterns of a recommendation type in the taxonomy

Only outcomes of specific recommendations are aggregated into patterns, so a
pattern always describes a concrete, repeatable change.

Also provides field-level validation of structured recommendation drafts
and the templates used to build well-formed drafts.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Pattern, Tuple

from athena.models.enums import ConfidenceLevel, RecommendationSource, RecommendationType
from athena.models.schemas import (
    OutcomeRecord,
    RecommendationDraft,
    RecommendationTemplate,
    RecommendationValidation,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Signal Patterns
# =============================================================================

def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Evaluated in taxonomy order; classification ties go to the earlier type
TYPE_SIGNAL_PATTERNS: Dict[RecommendationType, Tuple[Pattern, ...]] = {
    RecommendationType.MOTION_TIMING: _compile(
        r'\bmotion\b', r'\bmovement\b', r'\banimat\w*',
    ),
    RecommendationType.CUT_DENSITY: _compile(
        r'\bcuts?\b', r'\bscene changes?\b', r'\bpacing\b',
    ),
    RecommendationType.TEXT_APPEARANCE: _compile(
        r'\btext\b', r'\bcaptions?\b', r'\bon-screen\b',
    ),
    RecommendationType.VALUE_TIMING: _compile(
        r'\bvalue prop\w*', r'\bbenefits?\b', r'\bvalue\b',
    ),
    RecommendationType.OFFER_TIMING: _compile(
        r'\boffers?\b', r'\bdiscount\w*', r'\bpromo\w*',
    ),
    RecommendationType.CTA_CLARITY: _compile(
        r'\bcta\b', r'\bcall to action\b', r'\bbutton\b',
    ),
    RecommendationType.PROOF_ADDITION: _compile(
        r'\btestimonials?\b', r'\breviews?\b', r'\bsocial proof\b', r'\bratings?\b',
    ),
    RecommendationType.PRICING_VISIBILITY: _compile(
        r'\bpric(?:e|es|ing)\b', r'\bcost\b',
    ),
    RecommendationType.LANDING_PAGE: _compile(
        r'\blanding page\b', r'\blp\b', r'\bload time\b', r'\bpage speed\b',
    ),
    RecommendationType.CHECKOUT_FLOW: _compile(
        r'\bcheckout\b', r'\bcart\b', r'\bpayment steps?\b',
    ),
    RecommendationType.AUDIENCE_REFRESH: _compile(
        r'\baudiences?\b', r'\blookalikes?\b', r'\btargeting\b', r'\bfrequency\b',
    ),
}

VAGUE_PATTERN = re.compile(
    r'\b(stronger|better|improv\w*|optimi[sz]\w*|enhanc\w*|more engaging|more compelling)\b',
    re.IGNORECASE,
)

# Digits cover counts, time offsets ("0-3s") and percentages; quoted text
# covers concrete copy changes ('Change CTA to "Get your free guide now"')
MEASURABLE_PATTERN = re.compile(r'\d|"[^"]{2,}"')

VALID_METRICS: Tuple[str, ...] = (
    'CTR', 'CPA', 'ROAS', 'CVR', 'CPM', 'thumbstop', 'hook_rate', 'view_rate',
)

MIN_FIELD_LENGTH = 10
MIN_RUN_DURATION_DAYS = 3
MAX_RUN_DURATION_DAYS = 30


# =============================================================================
# Text Checks
# =============================================================================


def classify(text: Optional[str]) -> Optional[RecommendationType]:
    """
    Classify recommendation text into the type taxonomy.

    Each type scores one point per signal pattern found in the text. The
    highest score wins; ties go to the type listed first in the taxonomy.

    Returns:
        The matching RecommendationType, or None when no pattern matches.
    """
    if not text:
        return None

    best_type = None
    best_score = 0
    for rec_type, patterns in TYPE_SIGNAL_PATTERNS.items():
        score = sum(1 for pattern in patterns if pattern.search(text))
        if score > best_score:
            best_type = rec_type
            best_score = score

    return best_type


def find_vague_phrase(text: str) -> Optional[str]:
    """Return the first vague phrase in the text, lowercased, or None."""
    match = VAGUE_PATTERN.search(text)
    return match.group(1).lower() if match else None


def has_measurable_signal(text: str) -> bool:
    return MEASURABLE_PATTERN.search(text) is not None


def is_specific(text: Optional[str], rec_type: Optional[RecommendationType] = None) -> bool:
    """
    Decide whether recommendation text is concrete enough to learn from.

    Args:
        text: Recommendation text.
        rec_type: When given, the text must match this type's signal
            patterns; otherwise it must classify into some type.

    Returns:
        False for empty or vague text, for text without a measurable signal,
        and for text matching no type signal pattern.
    """
    if not text or not text.strip():
        return False

    if find_vague_phrase(text) is not None:
        return False

    if not has_measurable_signal(text):
        return False

    if rec_type is not None:
        return any(pattern.search(text) for pattern in TYPE_SIGNAL_PATTERNS[rec_type])

    return classify(text) is not None


def filter_trackable_outcomes(outcomes: List[OutcomeRecord]) -> List[OutcomeRecord]:
    """
    Keep only outcomes whose recommendation text passes is_specific().

    Records without text are dropped as well, since nothing shows the
    change was concrete.
    """
    trackable = [
        outcome for outcome in outcomes
        if is_specific(outcome.recommendation_text, outcome.recommendation_type)
    ]

    dropped = len(outcomes) - len(trackable)
    if dropped:
        logger.debug(f"Dropped {dropped} non-specific outcomes before aggregation")

    return trackable


# =============================================================================
# Structured Draft Validation
# =============================================================================


def validate_recommendation(draft: RecommendationDraft) -> RecommendationValidation:
    """
    Validate the structured fields of a recommendation draft.

    Checks:
    - what_to_change: 10+ characters and no vague phrases
    - target_range: includes a number or range
    - observable_gap: 10+ characters citing a measurement
    - metric_to_watch: names at least one known metric
    - run_duration_days: between 3 and 30
    - confidence, source_system and recommendation_type are set

    Returns:
        RecommendationValidation listing every failed check.
    """
    errors = []

    if len(draft.what_to_change) < MIN_FIELD_LENGTH:
        errors.append('what_to_change must be specific (10+ characters)')
    else:
        vague = find_vague_phrase(draft.what_to_change)
        if vague:
            errors.append(f'"{vague}" is too vague - specify the concrete change and target')

    if not re.search(r'\d', draft.target_range):
        errors.append('target_range must include a number or range (e.g., "0-3s", "20%")')

    if len(draft.observable_gap) < MIN_FIELD_LENGTH:
        errors.append('observable_gap must cite a specific measurement')

    metric_text = draft.metric_to_watch.upper()
    if not any(metric.upper() in metric_text for metric in VALID_METRICS):
        errors.append(f"metric_to_watch must include one of: {', '.join(VALID_METRICS)}")

    days = draft.run_duration_days
    if days is None or not MIN_RUN_DURATION_DAYS <= days <= MAX_RUN_DURATION_DAYS:
        errors.append(
            f'run_duration_days must be between {MIN_RUN_DURATION_DAYS} and {MAX_RUN_DURATION_DAYS}'
        )

    if draft.confidence is None:
        errors.append('confidence must be high, medium, or low')

    if draft.source_system is None:
        errors.append('source_system is required')

    if draft.recommendation_type is None:
        errors.append('recommendation_type is required')

    return RecommendationValidation(valid=not errors, errors=errors)


# =============================================================================
# Templates
# =============================================================================

RECOMMENDATION_TEMPLATES: Dict[RecommendationType, RecommendationTemplate] = {
    # Structure system
    RecommendationType.MOTION_TIMING: RecommendationTemplate(
        source_system=RecommendationSource.STRUCTURE,
        target_range_template='0-0.5s (currently {current}s)',
        metric_to_watch='thumbstop, hook_rate',
        run_duration_days=7,
        what_to_change_example='Add motion in the first 0.5 seconds',
        observable_gap_example='Motion currently starts at {current}s',
    ),
    RecommendationType.CUT_DENSITY: RecommendationTemplate(
        source_system=RecommendationSource.STRUCTURE,
        target_range_template='{target} cuts in first 3s (currently {current})',
        metric_to_watch='thumbstop, view_rate',
        run_duration_days=7,
        what_to_change_example='Add 2-3 scene cuts in the first 3 seconds',
        observable_gap_example='First 3 seconds have {current} cuts',
    ),
    RecommendationType.TEXT_APPEARANCE: RecommendationTemplate(
        source_system=RecommendationSource.STRUCTURE,
        target_range_template='0-1s (currently {current}s)',
        metric_to_watch='CTR, thumbstop',
        run_duration_days=7,
        what_to_change_example='Show key text within first 1 second',
        observable_gap_example='Text first appears at {current}s',
    ),

    # Narrative system
    RecommendationType.VALUE_TIMING: RecommendationTemplate(
        source_system=RecommendationSource.NARRATIVE,
        target_range_template='0-3s (currently in {current} segment)',
        metric_to_watch='CTR, CVR',
        run_duration_days=7,
        what_to_change_example='Move value proposition to opening 0-3s',
        observable_gap_example='Value proposition appears in {current} segment',
    ),
    RecommendationType.OFFER_TIMING: RecommendationTemplate(
        source_system=RecommendationSource.NARRATIVE,
        target_range_template='Before 5s (currently at {current}s)',
        metric_to_watch='CVR, CPA',
        run_duration_days=7,
        what_to_change_example='Introduce offer within first 5 seconds',
        observable_gap_example='Offer appears at {current}s',
    ),
    RecommendationType.CTA_CLARITY: RecommendationTemplate(
        source_system=RecommendationSource.NARRATIVE,
        target_range_template='Action verb + outcome, under 5 words',
        metric_to_watch='CTR, CVR',
        run_duration_days=7,
        what_to_change_example='Change CTA to "Get your free guide now"',
        observable_gap_example='Current CTA "{current}" lacks a specific outcome',
    ),
    RecommendationType.PROOF_ADDITION: RecommendationTemplate(
        source_system=RecommendationSource.NARRATIVE,
        target_range_template='Add {type} social proof within first 10s',
        metric_to_watch='CVR, CPA',
        run_duration_days=10,
        what_to_change_example='Add a customer testimonial in the first 5 seconds',
        observable_gap_example='No social proof present in creative',
    ),
    RecommendationType.PRICING_VISIBILITY: RecommendationTemplate(
        source_system=RecommendationSource.NARRATIVE,
        target_range_template='Show price before 10s',
        metric_to_watch='CVR, lead quality',
        run_duration_days=10,
        what_to_change_example='Display pricing within the first 10 seconds to qualify leads',
        observable_gap_example='Price not visible in creative',
    ),

    # Conversion system
    RecommendationType.LANDING_PAGE: RecommendationTemplate(
        source_system=RecommendationSource.CONVERSION,
        target_range_template='Load time <3s, headline matches ad',
        metric_to_watch='CVR, page_view → conversion rate',
        run_duration_days=14,
        what_to_change_example='Reduce landing page load time to under 3 seconds',
        observable_gap_example='Current load time is {current}s',
    ),
    RecommendationType.CHECKOUT_FLOW: RecommendationTemplate(
        source_system=RecommendationSource.CONVERSION,
        target_range_template='Reduce to {target} steps (currently {current}), max 3',
        metric_to_watch='CVR, checkout → purchase rate',
        run_duration_days=14,
        what_to_change_example='Simplify checkout to 2 steps',
        observable_gap_example='Current checkout has {current} steps',
    ),
    RecommendationType.AUDIENCE_REFRESH: RecommendationTemplate(
        source_system=RecommendationSource.CONVERSION,
        target_range_template='Frequency under 3.0 (currently {current})',
        metric_to_watch='CTR, frequency, CPM',
        run_duration_days=10,
        what_to_change_example='Refresh 1% lookalike audience based on recent purchasers',
        observable_gap_example='Frequency at {current}, CTR declining',
    ),
}


def _fill_placeholders(text: str, values: Dict[str, Any]) -> str:
    for key, value in values.items():
        text = text.replace(f'{{{key}}}', str(value))
    return text


def build_recommendation(
    rec_type: RecommendationType,
    values: Optional[Dict[str, Any]] = None,
    source_system: Optional[RecommendationSource] = None,
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
) -> RecommendationDraft:
    """
    Build a well-formed recommendation draft from its type's template.

    Args:
        rec_type: Recommendation type to build.
        values: Placeholder values, e.g. {'current': 1.2} for '{current}'.
        source_system: Producing system; defaults to the template's system.
        confidence: Confidence to attach.

    Returns:
        RecommendationDraft with every structured field filled in.
    """
    template = RECOMMENDATION_TEMPLATES[rec_type]
    values = values or {}

    what_to_change = _fill_placeholders(template.what_to_change_example, values)

    return RecommendationDraft(
        source_system=source_system or template.source_system,
        recommendation_type=rec_type,
        recommendation_text=what_to_change,
        what_to_change=what_to_change,
        target_range=_fill_placeholders(template.target_range_template, values),
        observable_gap=_fill_placeholders(template.observable_gap_example, values),
        metric_to_watch=template.metric_to_watch,
        run_duration_days=template.run_duration_days,
        confidence=confidence,
    )
