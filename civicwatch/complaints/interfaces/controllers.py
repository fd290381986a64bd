"""
Complaints Controllers (API Routes)
====================================

FastAPI routes for complaint submission, official actions and history.

Controllers are thin - they delegate to application services, which are
resolved from the container the lifespan stores on `app.state`.
"""

from typing import Union

from fastapi import APIRouter, Depends, Request, Response, status

from civicwatch.config import ComplaintStatus
from civicwatch.complaints.application import (
    AdmissionService,
    AssignRequest,
    AuditLogResponse,
    ComplaintResponse,
    ComplaintService,
    ComplaintSubmitRequest,
    StatusUpdateRequest,
    SubmissionAcceptedResponse,
    SubmissionRejectedResponse,
    TimelineResponse,
)
from civicwatch.complaints.application.dto import AuditEntryResponse, TimelineEntryResponse
from civicwatch.complaints.domain import Accepted, Rejected
from civicwatch.shared.infrastructure.logging import get_context_logger

router = APIRouter(prefix="/complaints", tags=["Complaints"])


# ========== Example payloads for Swagger ==========

SUBMIT_EXAMPLE = {
    "citizen_id": "citizen-42",
    "citizen_name": "Asha Rao",
    "title": "Deep pothole near bus stop",
    "location_name": "MG Road, Ward 12",
    "description": "A large pothole has formed in the left lane, cars swerve into traffic to avoid it.",
    "latitude": 12.9756,
    "longitude": 77.6050
}


# ========== Dependencies ==========

def get_admission_service(request: Request) -> AdmissionService:
    """Get admission service from the application container."""
    return request.app.state.container.admission_service


def get_complaint_service(request: Request) -> ComplaintService:
    """Get complaint service from the application container."""
    return request.app.state.container.complaint_service


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=Union[SubmissionAcceptedResponse, SubmissionRejectedResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Submit a complaint",
    description="""
    Submit a civic complaint (text and/or photo).

    The report is classified within a bounded time. If the classifier is
    unavailable, fixed defaults are applied and the complaint is still admitted.

    - **201**: admitted; the complaint record is returned with its first SLA deadline
    - **200**: not admitted (confidence below 0.2); nothing is stored
    """,
    responses={
        200: {"model": SubmissionRejectedResponse, "description": "Submission rejected"},
        201: {"model": SubmissionAcceptedResponse, "description": "Complaint admitted"},
    },
    openapi_extra={"requestBody": {"content": {"application/json": {"example": SUBMIT_EXAMPLE}}}}
)
async def submit_complaint(
    body: ComplaintSubmitRequest,
    request: Request,
    response: Response,
    admission: AdmissionService = Depends(get_admission_service)
):
    logger = get_context_logger(__name__, getattr(request.state, "correlation_id", None))

    result = await admission.submit(body.to_payload())

    if isinstance(result, Accepted):
        logger.info("Complaint submission admitted", extra={"complaint_id": result.complaint.id})
        return SubmissionAcceptedResponse(complaint=ComplaintResponse.from_entity(result.complaint))
    elif isinstance(result, Rejected):
        response.status_code = status.HTTP_200_OK
        logger.info(
            "Complaint submission rejected",
            extra={"confidence_score": result.confidence_score}
        )
        return SubmissionRejectedResponse(reason=result.reason, confidence_score=result.confidence_score)
    else:
        raise TypeError(f"Unknown admission result: {type(result).__name__}")


@router.get(
    "/{complaint_id}",
    response_model=ComplaintResponse,
    summary="Get a complaint",
    responses={404: {"description": "Complaint not found"}}
)
async def get_complaint(
    complaint_id: str,
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = await service.get_complaint(complaint_id)
    return ComplaintResponse.from_entity(complaint)


@router.get(
    "/{complaint_id}/timeline",
    response_model=TimelineResponse,
    summary="Citizen-facing timeline, oldest first"
)
async def get_timeline(
    complaint_id: str,
    service: ComplaintService = Depends(get_complaint_service)
):
    entries = await service.get_timeline(complaint_id)
    return TimelineResponse(
        complaint_id=complaint_id,
        entries=[TimelineEntryResponse.from_entity(entry) for entry in entries]
    )


@router.get(
    "/{complaint_id}/audit",
    response_model=AuditLogResponse,
    summary="Audit log, oldest first"
)
async def get_audit_log(
    complaint_id: str,
    service: ComplaintService = Depends(get_complaint_service)
):
    entries = await service.get_audit_log(complaint_id)
    return AuditLogResponse(
        complaint_id=complaint_id,
        entries=[AuditEntryResponse.from_entity(entry) for entry in entries]
    )


@router.patch(
    "/{complaint_id}/status",
    response_model=ComplaintResponse,
    summary="Official status update",
    description="""
    Move a complaint to `acknowledged`, `in_progress`, `on_hold` or `resolved`.

    Escalation level is never changed here. Resolving clears the SLA deadline.
    When an official is assigned, only that official may update the complaint.
    """,
    responses={
        403: {"description": "Another official is assigned"},
        404: {"description": "Complaint not found"},
        409: {"description": "Transition not allowed, or complaint changed concurrently"},
    }
)
async def update_status(
    complaint_id: str,
    body: StatusUpdateRequest,
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = await service.update_status(
        complaint_id,
        official_id=body.official_id,
        new_status=ComplaintStatus(body.status),
        notes=body.notes
    )
    return ComplaintResponse.from_entity(complaint)


@router.post(
    "/{complaint_id}/assign",
    response_model=ComplaintResponse,
    summary="Assign a complaint to an official",
    responses={
        404: {"description": "Complaint not found"},
        409: {"description": "Complaint is resolved or already assigned to this official"},
    }
)
async def assign_complaint(
    complaint_id: str,
    body: AssignRequest,
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = await service.assign(complaint_id, body.official_id)
    return ComplaintResponse.from_entity(complaint)


complaints_router = router
