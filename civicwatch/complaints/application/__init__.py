"""
Complaints Application Layer
=============================

Contains:
- Services: AdmissionService, ComplaintService
- Interfaces: IComplaintRepository, IClassificationGateway
- DTOs: Data transfer objects for API serialization
"""

from civicwatch.complaints.application.dto import (
    AssignRequest,
    AuditLogResponse,
    ComplaintResponse,
    ComplaintSubmitRequest,
    DashboardResponse,
    StatusUpdateRequest,
    SubmissionAcceptedResponse,
    SubmissionRejectedResponse,
    TimelineResponse,
)
from civicwatch.complaints.application.services import (
    AdmissionService,
    ComplaintService,
    IClassificationGateway,
    IComplaintRepository,
    fallback_classification,
)

__all__ = [
    # DTOs
    "AssignRequest",
    "AuditLogResponse",
    "ComplaintResponse",
    "ComplaintSubmitRequest",
    "DashboardResponse",
    "StatusUpdateRequest",
    "SubmissionAcceptedResponse",
    "SubmissionRejectedResponse",
    "TimelineResponse",
    # Services
    "AdmissionService",
    "ComplaintService",
    "fallback_classification",
    # Interfaces
    "IClassificationGateway",
    "IComplaintRepository",
]
