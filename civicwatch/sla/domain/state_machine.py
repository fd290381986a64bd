"""
Escalation State Machine
=========================

Pure functions over complaint status and escalation level.

The watchdog ladder:

    level 0 --deadline--> level 1, sla_warning
    level 1 --deadline--> level 2, escalated
    level 2 --deadline--> level 3, escalated (final)
    level 3 --deadline--> level 3, resolved (auto)

Every step but the last grants a fresh SLA window; resolving clears the
deadline. Officials move complaints between working statuses without
touching the level, and nothing leaves `resolved`.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from civicwatch.config import MAX_ESCALATION_LEVEL, ComplaintStatus
from civicwatch.core import InvalidTransitionException

_LADDER: Dict[int, Tuple[int, ComplaintStatus]] = {
    0: (1, ComplaintStatus.SLA_WARNING),
    1: (2, ComplaintStatus.ESCALATED),
    2: (3, ComplaintStatus.ESCALATED),
    3: (MAX_ESCALATION_LEVEL, ComplaintStatus.RESOLVED),
}

# Statuses an official may move a complaint to via a status update.
OFFICIAL_TARGETS = frozenset({
    ComplaintStatus.ACKNOWLEDGED,
    ComplaintStatus.IN_PROGRESS,
    ComplaintStatus.ON_HOLD,
    ComplaintStatus.RESOLVED,
})


@dataclass(frozen=True)
class EscalationStep:
    """Outcome of one watchdog advance."""
    previous_level: int
    level: int
    status: ComplaintStatus
    next_escalation_at: Optional[datetime]

    @property
    def auto_resolved(self) -> bool:
        return self.status == ComplaintStatus.RESOLVED


def next_escalation(level: int, now: datetime, sla_duration: timedelta) -> EscalationStep:
    """
    Compute the ladder step for a complaint whose deadline has passed.

    Raises:
        ValueError: If level is outside 0..MAX_ESCALATION_LEVEL
    """
    if level not in _LADDER:
        raise ValueError(f"escalation level out of range: {level}")

    new_level, status = _LADDER[level]
    deadline = None if status == ComplaintStatus.RESOLVED else now + sla_duration
    return EscalationStep(
        previous_level=level,
        level=new_level,
        status=status,
        next_escalation_at=deadline,
    )


def check_official_transition(current: ComplaintStatus, target: ComplaintStatus) -> None:
    """
    Validate a status update requested by an official.

    Raises:
        InvalidTransitionException: If the move is not allowed
    """
    if current == ComplaintStatus.RESOLVED:
        raise InvalidTransitionException(current.value, target.value, "complaint is already resolved")
    if target not in OFFICIAL_TARGETS:
        raise InvalidTransitionException(current.value, target.value, "status cannot be set by an official")
    if target == current:
        raise InvalidTransitionException(current.value, target.value, "complaint already has this status")


def check_assignment(current: ComplaintStatus) -> None:
    """Assignment is allowed from any unresolved status."""
    if current == ComplaintStatus.RESOLVED:
        raise InvalidTransitionException(
            current.value, ComplaintStatus.ASSIGNED.value, "complaint is already resolved"
        )
