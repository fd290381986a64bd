"""
Complaints Application Services
================================

Admission of new complaints, official actions and read-side queries.

Orchestrates the triage gateway, the escalation state machine and the
record store. Every mutation of an existing complaint goes through the
repository's version-checked `apply_transition`.
"""

from abc import ABC, abstractmethod
from datetime import datetime, time as dt_time
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from civicwatch.config import (
    CATEGORY_DEPARTMENTS,
    CONFIDENCE_FLOOR,
    Actor,
    AuthenticityStatus,
    ComplaintStatus,
    IssueCategory,
    Severity,
)
from civicwatch.complaints.domain import (
    Accepted,
    AdmissionResult,
    AuditEntry,
    Complaint,
    ComplaintChanges,
    ComplaintSummary,
    ExternalDecision,
    FallbackDecision,
    Rejected,
    SubmissionPayload,
    TimelineEntry,
)
from civicwatch.core import (
    AuthorizationException,
    ConcurrencyConflictException,
    InvalidTransitionException,
    ResourceNotFoundException,
)
from civicwatch.shared import utcnow
from civicwatch.shared.infrastructure.logging import get_logger
from civicwatch.sla.domain import ISLAPolicyProvider, check_assignment, check_official_transition
from civicwatch.triage.domain import (
    ClassificationContext,
    ClassificationPayload,
    ClassificationRequest,
    GatewayOutcome,
)

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IComplaintRepository(ABC):
    """Interface for complaint data access."""

    @abstractmethod
    async def create(
        self,
        complaint: Complaint,
        audit: List[AuditEntry],
        timeline: List[TimelineEntry]
    ) -> Complaint:
        """Persist a new complaint with its initial log entries in one transaction."""

    @abstractmethod
    async def get_by_id(self, complaint_id: str) -> Optional[Complaint]:
        """Fresh read of one complaint."""

    @abstractmethod
    async def find_overdue(self, now: datetime, limit: int) -> List[Complaint]:
        """Unresolved complaints whose deadline is at or before `now`, earliest first."""

    @abstractmethod
    async def apply_transition(
        self,
        snapshot: Complaint,
        changes: ComplaintChanges,
        audit: AuditEntry,
        timeline: TimelineEntry
    ) -> Complaint:
        """
        Commit `changes` only if the stored row still matches `snapshot.version`
        and is unresolved; append both log entries in the same transaction.

        Raises:
            ConcurrencyConflictException: If no row matched
        """

    @abstractmethod
    async def append_timeline(self, complaint_id: str, entry: TimelineEntry) -> None:
        """Append a timeline entry without touching the complaint row."""

    @abstractmethod
    async def list_audit(self, complaint_id: str) -> List[AuditEntry]:
        """Audit entries in insertion order."""

    @abstractmethod
    async def list_timeline(self, complaint_id: str) -> List[TimelineEntry]:
        """Timeline entries in insertion order."""

    @abstractmethod
    async def summarize(self, now: datetime, since: datetime) -> ComplaintSummary:
        """Dashboard counters; `since` bounds the resolved-today count."""


class IClassificationGateway(ABC):
    """Interface for the bounded-time classifier."""

    @abstractmethod
    async def classify(
        self,
        payload: ClassificationRequest,
        context: ClassificationContext
    ) -> GatewayOutcome:
        """Classify a submission; never raises."""


def fallback_classification(citizen_text: str) -> ClassificationPayload:
    """Deterministic defaults used when the classifier is unavailable."""
    return ClassificationPayload(
        description=citizen_text,
        category=IssueCategory.OTHER,
        severity=Severity.MEDIUM,
        priority=5,
        confidence_score=0.5,
        authenticity_status=AuthenticityStatus.UNCERTAIN,
    )


# ========== Application Services ==========

class AdmissionService:
    """
    Admission gate for citizen submissions.

    Classifies, decides accept/reject, and persists accepted complaints
    together with their initial audit and timeline entries.
    """

    def __init__(
        self,
        repository: IComplaintRepository,
        gateway: IClassificationGateway,
        policy_provider: ISLAPolicyProvider,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid4())
    ):
        self._repository = repository
        self._gateway = gateway
        self._policy_provider = policy_provider
        self._clock = clock
        self._id_factory = id_factory

    async def submit(self, payload: SubmissionPayload) -> AdmissionResult:
        outcome = await self._gateway.classify(
            ClassificationRequest(description=payload.description, image_base64=payload.image_base64),
            ClassificationContext(
                title=payload.title,
                location_name=payload.location_name,
                latitude=payload.latitude,
                longitude=payload.longitude
            )
        )
        now = self._clock()

        if outcome.succeeded:
            classification = outcome.payload
            decision = ExternalDecision(raw=classification, decided_at=now)
        else:
            classification = fallback_classification(payload.description)
            decision = FallbackDecision(reason=outcome.failure_reason, decided_at=now)

        if classification.confidence_score < CONFIDENCE_FLOOR:
            logger.info(
                "Submission rejected",
                extra={
                    "citizen_id": payload.citizen_id,
                    "confidence_score": classification.confidence_score,
                    "category": classification.category.value
                }
            )
            return Rejected(
                reason="Submission does not appear to show a genuine civic issue",
                confidence_score=classification.confidence_score
            )

        department = CATEGORY_DEPARTMENTS[classification.category]
        policy = self._policy_provider.get_policy()

        complaint = Complaint(
            id=self._id_factory(),
            citizen_id=payload.citizen_id,
            citizen_name=payload.citizen_name,
            title=payload.title,
            description=payload.description or classification.description,
            location_name=payload.location_name,
            latitude=payload.latitude,
            longitude=payload.longitude,
            category=classification.category,
            severity=classification.severity,
            priority=classification.priority,
            department=department,
            confidence_score=classification.confidence_score,
            authenticity_status=classification.authenticity_status,
            agent_decision=decision,
            status=ComplaintStatus.ANALYZED,
            escalation_level=0,
            next_escalation_at=now + policy.sla_duration,
            created_at=now,
            updated_at=now,
        )

        audit = [
            AuditEntry(
                timestamp=now,
                action="submitted",
                actor=Actor.CITIZEN,
                details={"citizen_id": payload.citizen_id}
            ),
            AuditEntry(
                timestamp=now,
                action="analyzed",
                actor=Actor.SYSTEM,
                details={
                    "source": decision.source.value,
                    "category": classification.category.value,
                    "severity": classification.severity.value,
                    "department": department,
                    "confidence_score": classification.confidence_score
                }
            ),
        ]

        if isinstance(decision, ExternalDecision):
            timeline = TimelineEntry(
                type=Actor.SYSTEM,
                action="ai_classification",
                message=(
                    f"Automated classification suggested department={department}, "
                    f"severity={classification.severity.value}."
                ),
                timestamp=now
            )
        else:
            timeline = TimelineEntry(
                type=Actor.SYSTEM,
                action="ai_fallback",
                message="Automated suggestion unavailable or invalid. System applied fallback defaults.",
                timestamp=now
            )

        created = await self._repository.create(complaint, audit, [timeline])
        logger.info(
            "Complaint admitted",
            extra={
                "complaint_id": created.id,
                "decision_source": decision.source.value,
                "department": department,
                "next_escalation_at": created.next_escalation_at.isoformat()
            }
        )
        return Accepted(complaint=created)


TransitionPlan = Tuple[ComplaintChanges, AuditEntry, TimelineEntry]


class ComplaintService:
    """
    Official actions and read-side queries.

    Status updates and assignment go through the same conditional update as
    the watchdog; a lost race is retried against a fresh read.
    """

    def __init__(
        self,
        repository: IComplaintRepository,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = 3
    ):
        self._repository = repository
        self._clock = clock
        self._max_attempts = max_attempts

    async def get_complaint(self, complaint_id: str) -> Complaint:
        complaint = await self._repository.get_by_id(complaint_id)
        if complaint is None:
            raise ResourceNotFoundException("Complaint", complaint_id)
        return complaint

    async def get_timeline(self, complaint_id: str) -> List[TimelineEntry]:
        await self.get_complaint(complaint_id)
        return await self._repository.list_timeline(complaint_id)

    async def get_audit_log(self, complaint_id: str) -> List[AuditEntry]:
        await self.get_complaint(complaint_id)
        return await self._repository.list_audit(complaint_id)

    async def update_status(
        self,
        complaint_id: str,
        official_id: str,
        new_status: ComplaintStatus,
        notes: Optional[str] = None
    ) -> Complaint:
        """
        Move a complaint to acknowledged, in_progress, on_hold or resolved.

        Raises:
            ResourceNotFoundException: If the complaint does not exist
            AuthorizationException: If another official is assigned
            InvalidTransitionException: If the move is not allowed
        """
        def plan(snapshot: Complaint, now: datetime) -> TransitionPlan:
            check_official_transition(snapshot.status, new_status)
            if snapshot.assigned_official_id and snapshot.assigned_official_id != official_id:
                raise AuthorizationException(
                    "Only the assigned official can update this complaint",
                    {"complaint_id": snapshot.id, "official_id": official_id}
                )

            resolving = new_status == ComplaintStatus.RESOLVED
            details = {
                "official_id": official_id,
                "previous_status": snapshot.status.value,
                "new_status": new_status.value,
            }
            if notes:
                details["notes"] = notes

            if resolving:
                hours = round((now - snapshot.created_at).total_seconds() / 3600, 1)
                details["resolution_hours"] = hours
                action = f"Resolved in {hours} hours"
                message = "Your complaint has been marked as resolved."
            else:
                action = f"Status changed to {new_status.value}"
                message = f"Status updated to {new_status.value.replace('_', ' ')}."
            if notes:
                message += f" Notes: {notes}"

            changes = ComplaintChanges(
                status=new_status,
                escalation_level=snapshot.escalation_level,
                next_escalation_at=None if resolving else snapshot.next_escalation_at,
                updated_at=now
            )
            return (
                changes,
                AuditEntry(timestamp=now, action=action, actor=Actor.OFFICIAL, details=details),
                TimelineEntry(type=Actor.OFFICIAL, action="status_update", message=message, timestamp=now),
            )

        return await self._transition(complaint_id, plan)

    async def assign(self, complaint_id: str, official_id: str) -> Complaint:
        """Assign a complaint to an official and move it to `assigned`."""
        def plan(snapshot: Complaint, now: datetime) -> TransitionPlan:
            check_assignment(snapshot.status)
            if (snapshot.status == ComplaintStatus.ASSIGNED
                    and snapshot.assigned_official_id == official_id):
                raise InvalidTransitionException(
                    snapshot.status.value,
                    ComplaintStatus.ASSIGNED.value,
                    "complaint is already assigned to this official"
                )

            changes = ComplaintChanges(
                status=ComplaintStatus.ASSIGNED,
                escalation_level=snapshot.escalation_level,
                next_escalation_at=snapshot.next_escalation_at,
                updated_at=now,
                assigned_official_id=official_id
            )
            details = {
                "official_id": official_id,
                "previous_official_id": snapshot.assigned_official_id,
                "previous_status": snapshot.status.value,
            }
            return (
                changes,
                AuditEntry(timestamp=now, action="assigned", actor=Actor.OFFICIAL, details=details),
                TimelineEntry(
                    type=Actor.OFFICIAL,
                    action="assigned",
                    message=f"Complaint assigned to an official in {snapshot.department}.",
                    timestamp=now
                ),
            )

        return await self._transition(complaint_id, plan)

    async def dashboard(self) -> ComplaintSummary:
        now = self._clock()
        day_start = datetime.combine(now.date(), dt_time.min, tzinfo=now.tzinfo)
        return await self._repository.summarize(now=now, since=day_start)

    async def _transition(
        self,
        complaint_id: str,
        plan: Callable[[Complaint, datetime], TransitionPlan]
    ) -> Complaint:
        attempt = 1
        while True:
            snapshot = await self.get_complaint(complaint_id)
            changes, audit, timeline = plan(snapshot, self._clock())
            try:
                updated = await self._repository.apply_transition(snapshot, changes, audit, timeline)
            except ConcurrencyConflictException:
                if attempt >= self._max_attempts:
                    raise
                logger.debug(
                    "Official action lost a race, retrying",
                    extra={"complaint_id": complaint_id, "attempt": attempt}
                )
                attempt += 1
                continue

            logger.info(
                "Complaint updated by official",
                extra={
                    "complaint_id": complaint_id,
                    "status": updated.status.value,
                    "version": updated.version
                }
            )
            return updated
