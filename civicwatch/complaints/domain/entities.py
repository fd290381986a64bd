"""
Complaint Domain Entities
==========================

Pure Python domain entities for the complaint lifecycle.

The Complaint constructor enforces the record invariants, and every
mutation goes through `apply()`, which builds a new Complaint and so runs
the same checks again.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Union

from civicwatch.config import (
    MAX_ESCALATION_LEVEL,
    Actor,
    AuthenticityStatus,
    ComplaintStatus,
    IssueCategory,
    Severity,
)
from civicwatch.complaints.domain.decisions import AgentDecision
from civicwatch.core import InvalidTransitionException


@dataclass(frozen=True)
class ComplaintChanges:
    """
    The fields a single transition may touch.

    `assigned_official_id` of None means "leave unchanged".
    """
    status: ComplaintStatus
    escalation_level: int
    next_escalation_at: Optional[datetime]
    updated_at: datetime
    assigned_official_id: Optional[str] = None


@dataclass(frozen=True)
class Complaint:
    """
    Complaint entity.

    `next_escalation_at` is the only deadline on the record: it is None
    exactly when the complaint is resolved.
    """

    id: str
    citizen_id: str
    citizen_name: str
    title: str
    description: str
    location_name: str

    # Classification outcome
    category: IssueCategory
    severity: Severity
    priority: int
    department: str
    confidence_score: float
    authenticity_status: AuthenticityStatus
    agent_decision: AgentDecision

    # Lifecycle
    status: ComplaintStatus
    escalation_level: int
    next_escalation_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    assigned_official_id: Optional[str] = None
    version: int = 1

    def __post_init__(self):
        """Validate complaint on initialization."""
        if not 0 <= self.escalation_level <= MAX_ESCALATION_LEVEL:
            raise ValueError(f"escalation_level must be between 0 and {MAX_ESCALATION_LEVEL}")

        if (self.next_escalation_at is None) != (self.status == ComplaintStatus.RESOLVED):
            raise ValueError("next_escalation_at must be set exactly when the complaint is unresolved")

        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError("confidence_score must be between 0 and 1")

        if not 1 <= self.priority <= 10:
            raise ValueError("priority must be between 1 and 10")

        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")

    @property
    def is_resolved(self) -> bool:
        return self.status == ComplaintStatus.RESOLVED

    def is_overdue(self, now: datetime) -> bool:
        return not self.is_resolved and self.next_escalation_at <= now

    def apply(self, changes: ComplaintChanges) -> "Complaint":
        """
        Return the complaint as it looks after `changes`, one version later.

        Raises:
            InvalidTransitionException: If the complaint is resolved or the
                escalation level would go down
        """
        if self.is_resolved:
            raise InvalidTransitionException(
                self.status.value, changes.status.value, "complaint is already resolved"
            )
        if changes.escalation_level < self.escalation_level:
            raise InvalidTransitionException(
                self.status.value, changes.status.value, "escalation level cannot decrease"
            )

        return replace(
            self,
            status=changes.status,
            escalation_level=changes.escalation_level,
            next_escalation_at=changes.next_escalation_at,
            updated_at=changes.updated_at,
            assigned_official_id=changes.assigned_official_id or self.assigned_official_id,
            version=self.version + 1,
        )


@dataclass(frozen=True)
class AuditEntry:
    """One append-only audit record."""
    timestamp: datetime
    action: str
    actor: Actor
    details: Optional[dict] = None


@dataclass(frozen=True)
class TimelineEntry:
    """One citizen-facing timeline event."""
    type: Actor
    action: str
    message: str
    timestamp: datetime


@dataclass(frozen=True)
class SubmissionPayload:
    """A citizen's complaint as received, before classification."""
    citizen_id: str
    citizen_name: str
    title: str
    location_name: str
    description: str = ""
    image_base64: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class Accepted:
    complaint: Complaint


@dataclass(frozen=True)
class Rejected:
    reason: str
    confidence_score: float


AdmissionResult = Union[Accepted, Rejected]


@dataclass
class ComplaintSummary:
    """Dashboard counters over all complaints."""
    total: int = 0
    pending: int = 0
    escalated: int = 0
    critical: int = 0
    resolved_today: int = 0
    sla_breaches: int = 0
    by_status: dict = field(default_factory=dict)
