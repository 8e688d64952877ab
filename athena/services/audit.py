"""
Gate Decision Audit Log

Records every gating decision (score attempts, recommendation generation,
system activation, eligibility checks) for debugging and compliance. Entries
are emitted through the standard logging module on the 'athena.audit'
logger; deployments route that logger to whatever sink they keep audit
trails in. Each entry carries the full structured payload in the log
record's `audit` attribute.

Related decisions share a trace id so a single ad's evaluation can be
followed across systems.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from athena.core.config import get_settings
from athena.models.enums import GateDecisionType, RecommendationSource
from athena.models.schemas import GateAuditEntry, GateStatus


audit_logger = logging.getLogger('athena.audit')


def generate_trace_id() -> str:
    """Generate a unique trace id for linking related decisions."""
    return str(uuid.uuid4())


def get_systems_activated(status: GateStatus) -> List[RecommendationSource]:
    """
    Scoring systems a GateStatus allows to run.

    - structure: delivery is scorable
    - conversion: conversion is scorable
    - narrative: conversion is scorable and conversions reach
      narrative_min_conversions (30 by default)
    """
    settings = get_settings()
    systems = []

    if status.can_score_delivery:
        systems.append(RecommendationSource.STRUCTURE)
    if status.can_score_conversion:
        if status.conversions.current >= settings.narrative_min_conversions:
            systems.append(RecommendationSource.NARRATIVE)
        systems.append(RecommendationSource.CONVERSION)

    return systems


def _is_blocked(status: GateStatus, gate_type: GateDecisionType) -> bool:
    if gate_type == GateDecisionType.SCORE_ATTEMPT:
        return not status.can_score_delivery
    if gate_type == GateDecisionType.RECOMMENDATION_GEN:
        return not status.can_show_recommendations
    return not (status.can_score_delivery or status.can_score_conversion)


def log_gate_decision(
    status: GateStatus,
    account_id: str,
    ad_id: Optional[str] = None,
    gate_type: GateDecisionType = GateDecisionType.SCORE_ATTEMPT,
    trace_id: Optional[str] = None,
) -> GateAuditEntry:
    """
    Write one gate decision to the audit log.

    Args:
        status: The evaluated GateStatus.
        account_id: Account the ad belongs to.
        ad_id: Ad identifier, when the decision concerns a single ad.
        gate_type: Kind of decision being recorded.
        trace_id: Existing trace id to link to; a new one is generated if None.

    Returns:
        The GateAuditEntry that was logged.
    """
    blocked = _is_blocked(status, gate_type)

    entry = GateAuditEntry(
        trace_id=trace_id or generate_trace_id(),
        account_id=account_id,
        ad_id=ad_id,
        gate_type=gate_type,
        systems_activated=get_systems_activated(status),
        blocked=blocked,
        blocked_reason=status.gate_messages[0] if blocked and status.gate_messages else None,
        logged_at=datetime.now(timezone.utc),
    )

    systems = ', '.join(s.value for s in entry.systems_activated) or 'none'
    audit_logger.info(
        f"[{entry.trace_id}] {gate_type.value} account={account_id} ad={ad_id or '-'} "
        f"blocked={blocked} systems={systems}"
        + (f" reason={entry.blocked_reason!r}" if entry.blocked_reason else ""),
        extra={'audit': entry.model_dump(mode='json')},
    )

    return entry


def format_audit_trail(entries: List[GateAuditEntry]) -> str:
    """Render a list of audit entries for debugging output."""
    lines = [
        f"ATHENA Audit Trail ({len(entries)} steps)",
        '=' * 50,
    ]

    for step, entry in enumerate(entries, start=1):
        state = 'BLOCKED' if entry.blocked else 'PASSED'
        lines.append(f"[{step}] {entry.gate_type.value}: {state}")
        if entry.systems_activated:
            lines.append(f"    Systems: {', '.join(s.value for s in entry.systems_activated)}")
        if entry.blocked_reason:
            lines.append(f"    Reason: {entry.blocked_reason}")

    return '\n'.join(lines)
