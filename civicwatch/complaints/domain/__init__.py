"""
Complaints Domain Layer
=======================

Contains:
- Entities: Complaint, AuditEntry, TimelineEntry, ComplaintSummary
- Decisions: ExternalDecision | FallbackDecision
- Admission results: Accepted | Rejected

This layer is framework-agnostic and contains pure business logic.
"""

from civicwatch.complaints.domain.decisions import (
    AgentDecision,
    ExternalDecision,
    FallbackDecision,
    decision_from_document,
    decision_to_document,
)
from civicwatch.complaints.domain.entities import (
    Accepted,
    AdmissionResult,
    AuditEntry,
    Complaint,
    ComplaintChanges,
    ComplaintSummary,
    Rejected,
    SubmissionPayload,
    TimelineEntry,
)

__all__ = [
    "AgentDecision",
    "ExternalDecision",
    "FallbackDecision",
    "decision_from_document",
    "decision_to_document",
    "Accepted",
    "AdmissionResult",
    "AuditEntry",
    "Complaint",
    "ComplaintChanges",
    "ComplaintSummary",
    "Rejected",
    "SubmissionPayload",
    "TimelineEntry",
]
