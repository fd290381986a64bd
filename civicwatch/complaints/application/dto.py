"""
Complaints Application DTOs
============================

Pydantic models for the complaints API.

The agent decision is a discriminated union on `source`: the fallback
member declares no `raw` field, so a fallback decision cannot serialize
model output.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from civicwatch.complaints.domain import (
    AgentDecision,
    AuditEntry,
    Complaint,
    ComplaintSummary,
    ExternalDecision,
    FallbackDecision,
    SubmissionPayload,
    TimelineEntry,
)


# ========== Type Aliases for Literals ==========
ComplaintStatusStr = Literal[
    "submitted", "analyzed", "assigned", "acknowledged", "in_progress",
    "on_hold", "sla_warning", "escalated", "resolved"
]
OfficialTargetStr = Literal["acknowledged", "in_progress", "on_hold", "resolved"]
SeverityStr = Literal["low", "medium", "high", "critical"]
AuthenticityStr = Literal["fake", "uncertain", "real"]
ActorStr = Literal["system", "citizen", "official"]


# ========== Request DTOs ==========

class ComplaintSubmitRequest(BaseModel):
    """Request model for a citizen submission."""
    citizen_id: str = Field(..., min_length=1, description="Submitting citizen")
    citizen_name: str = Field(..., min_length=1, description="Citizen display name")
    title: str = Field(..., min_length=1, max_length=200, description="Short title")
    location_name: str = Field(..., min_length=1, description="Human-readable location")
    description: str = Field(default="", max_length=5000, description="Citizen's own description")
    image_base64: Optional[str] = Field(None, description="Photo, base64 or data URL")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def validate_content(self) -> "ComplaintSubmitRequest":
        """A submission needs text or a photo to classify."""
        if not self.description.strip() and not self.image_base64:
            raise ValueError("either description or image_base64 is required")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    def to_payload(self) -> SubmissionPayload:
        return SubmissionPayload(
            citizen_id=self.citizen_id,
            citizen_name=self.citizen_name,
            title=self.title,
            location_name=self.location_name,
            description=self.description.strip(),
            image_base64=self.image_base64,
            latitude=self.latitude,
            longitude=self.longitude,
        )


class StatusUpdateRequest(BaseModel):
    """Request model for an official status update."""
    official_id: str = Field(..., min_length=1)
    status: OfficialTargetStr
    notes: Optional[str] = Field(None, max_length=2000)


class AssignRequest(BaseModel):
    official_id: str = Field(..., min_length=1)


# ========== Response DTOs ==========

class ClassificationRaw(BaseModel):
    description: str
    category: str
    severity: SeverityStr
    priority: int
    confidence_score: float
    authenticity_status: AuthenticityStr
    reasoning: str


class ExternalDecisionResponse(BaseModel):
    source: Literal["external"] = "external"
    raw: ClassificationRaw
    decided_at: datetime


class FallbackDecisionResponse(BaseModel):
    source: Literal["fallback"] = "fallback"
    reason: str
    decided_at: datetime


AgentDecisionResponse = Annotated[
    Union[ExternalDecisionResponse, FallbackDecisionResponse],
    Field(discriminator="source")
]


def decision_response(decision: AgentDecision) -> Union[ExternalDecisionResponse, FallbackDecisionResponse]:
    if isinstance(decision, ExternalDecision):
        return ExternalDecisionResponse(
            raw=ClassificationRaw(**decision.raw.to_dict()),
            decided_at=decision.decided_at,
        )
    elif isinstance(decision, FallbackDecision):
        return FallbackDecisionResponse(reason=decision.reason, decided_at=decision.decided_at)
    else:
        raise TypeError(f"Unknown decision type: {type(decision).__name__}")


class ComplaintResponse(BaseModel):
    """Response model for a complaint."""
    id: str
    citizen_id: str
    citizen_name: str
    title: str
    description: str
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    category: str
    severity: SeverityStr
    priority: int
    department: str
    status: ComplaintStatusStr
    escalation_level: int
    next_escalation_at: Optional[datetime] = Field(
        None, description="Next SLA deadline; null once resolved"
    )
    confidence_score: float
    authenticity_status: AuthenticityStr
    agent_decision: AgentDecisionResponse
    assigned_official_id: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, complaint: Complaint) -> "ComplaintResponse":
        return cls(
            id=complaint.id,
            citizen_id=complaint.citizen_id,
            citizen_name=complaint.citizen_name,
            title=complaint.title,
            description=complaint.description,
            location_name=complaint.location_name,
            latitude=complaint.latitude,
            longitude=complaint.longitude,
            category=complaint.category.value,
            severity=complaint.severity.value,
            priority=complaint.priority,
            department=complaint.department,
            status=complaint.status.value,
            escalation_level=complaint.escalation_level,
            next_escalation_at=complaint.next_escalation_at,
            confidence_score=complaint.confidence_score,
            authenticity_status=complaint.authenticity_status.value,
            agent_decision=decision_response(complaint.agent_decision),
            assigned_official_id=complaint.assigned_official_id,
            version=complaint.version,
            created_at=complaint.created_at,
            updated_at=complaint.updated_at,
        )


class SubmissionRejectedResponse(BaseModel):
    """Returned with 200 when a submission is not admitted."""
    accepted: Literal[False] = False
    reason: str
    confidence_score: float


class SubmissionAcceptedResponse(BaseModel):
    accepted: Literal[True] = True
    complaint: ComplaintResponse


class AuditEntryResponse(BaseModel):
    timestamp: datetime
    action: str
    actor: ActorStr
    details: Optional[dict] = None

    @classmethod
    def from_entity(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            timestamp=entry.timestamp,
            action=entry.action,
            actor=entry.actor.value,
            details=entry.details,
        )


class TimelineEntryResponse(BaseModel):
    type: ActorStr
    action: str
    message: str
    timestamp: datetime

    @classmethod
    def from_entity(cls, entry: TimelineEntry) -> "TimelineEntryResponse":
        return cls(
            type=entry.type.value,
            action=entry.action,
            message=entry.message,
            timestamp=entry.timestamp,
        )


class AuditLogResponse(BaseModel):
    complaint_id: str
    entries: List[AuditEntryResponse]


class TimelineResponse(BaseModel):
    complaint_id: str
    entries: List[TimelineEntryResponse]


class DashboardResponse(BaseModel):
    """Dashboard counters."""
    total: int
    pending: int
    escalated: int
    critical: int
    resolved_today: int
    sla_breaches: int
    by_status: dict = Field(default_factory=dict)

    @classmethod
    def from_summary(cls, summary: ComplaintSummary) -> "DashboardResponse":
        return cls(
            total=summary.total,
            pending=summary.pending,
            escalated=summary.escalated,
            critical=summary.critical,
            resolved_today=summary.resolved_today,
            sla_breaches=summary.sla_breaches,
            by_status=summary.by_status,
        )
