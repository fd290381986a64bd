import pytest

from civicwatch.complaints.application import ComplaintService
from civicwatch.complaints.infrastructure import SQLAlchemyComplaintRepository
from civicwatch.config import Actor, ComplaintStatus
from civicwatch.core import (
    AuthorizationException,
    ConcurrencyConflictException,
    InvalidTransitionException,
    ResourceNotFoundException,
)

from conftest import T0, WINDOW


class RacingRepository(SQLAlchemyComplaintRepository):
    """Loses the first `losses` conditional updates."""

    def __init__(self, session_factory, losses):
        super().__init__(session_factory)
        self.losses = losses
        self.attempts = 0

    async def apply_transition(self, snapshot, changes, audit, timeline):
        self.attempts += 1
        if self.attempts <= self.losses:
            raise ConcurrencyConflictException(snapshot.id, snapshot.version)
        return await super().apply_transition(snapshot, changes, audit, timeline)


async def test_acknowledge_keeps_level_and_deadline(complaint_service, repository, make_complaint):
    complaint = await make_complaint(escalation_level=2, status=ComplaintStatus.ESCALATED)

    updated = await complaint_service.update_status(complaint.id, "off-1", ComplaintStatus.ACKNOWLEDGED)

    assert updated.status == ComplaintStatus.ACKNOWLEDGED
    assert updated.escalation_level == 2
    assert updated.next_escalation_at == complaint.next_escalation_at

    audit = await repository.list_audit(complaint.id)
    assert audit[-1].action == "Status changed to acknowledged"
    assert audit[-1].actor == Actor.OFFICIAL
    assert audit[-1].details["official_id"] == "off-1"
    timeline = await repository.list_timeline(complaint.id)
    assert timeline[-1].action == "status_update"
    assert timeline[-1].type == Actor.OFFICIAL


async def test_resolve_clears_deadline_and_records_duration(
    complaint_service, repository, make_complaint, clock
):
    complaint = await make_complaint()
    clock.advance(hours=2)

    resolved = await complaint_service.update_status(
        complaint.id, "off-1", ComplaintStatus.RESOLVED, notes="Patched with cold mix"
    )

    assert resolved.is_resolved
    assert resolved.next_escalation_at is None
    audit = await repository.list_audit(complaint.id)
    assert audit[-1].action == "Resolved in 2.0 hours"
    assert audit[-1].details["resolution_hours"] == 2.0
    assert audit[-1].details["notes"] == "Patched with cold mix"
    timeline = await repository.list_timeline(complaint.id)
    assert timeline[-1].message.endswith("Notes: Patched with cold mix")


async def test_resolved_complaint_is_final(complaint_service, make_complaint):
    complaint = await make_complaint()
    await complaint_service.update_status(complaint.id, "off-1", ComplaintStatus.RESOLVED)

    with pytest.raises(InvalidTransitionException):
        await complaint_service.update_status(complaint.id, "off-1", ComplaintStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransitionException):
        await complaint_service.assign(complaint.id, "off-2")


async def test_same_status_rejected(complaint_service, make_complaint):
    complaint = await make_complaint(status=ComplaintStatus.ON_HOLD)

    with pytest.raises(InvalidTransitionException):
        await complaint_service.update_status(complaint.id, "off-1", ComplaintStatus.ON_HOLD)


async def test_only_assigned_official_may_update(complaint_service, make_complaint):
    complaint = await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_official_id="off-1")

    with pytest.raises(AuthorizationException):
        await complaint_service.update_status(complaint.id, "off-2", ComplaintStatus.IN_PROGRESS)

    updated = await complaint_service.update_status(complaint.id, "off-1", ComplaintStatus.IN_PROGRESS)
    assert updated.status == ComplaintStatus.IN_PROGRESS


async def test_assign_and_reassign(complaint_service, repository, make_complaint):
    complaint = await make_complaint(escalation_level=1, status=ComplaintStatus.SLA_WARNING)

    assigned = await complaint_service.assign(complaint.id, "off-1")

    assert assigned.status == ComplaintStatus.ASSIGNED
    assert assigned.assigned_official_id == "off-1"
    assert assigned.escalation_level == 1

    with pytest.raises(InvalidTransitionException):
        await complaint_service.assign(complaint.id, "off-1")

    reassigned = await complaint_service.assign(complaint.id, "off-2")
    assert reassigned.assigned_official_id == "off-2"

    audit = await repository.list_audit(complaint.id)
    assert audit[-1].details["previous_official_id"] == "off-1"


async def test_unknown_complaint(complaint_service):
    with pytest.raises(ResourceNotFoundException):
        await complaint_service.update_status("missing", "off-1", ComplaintStatus.ACKNOWLEDGED)
    with pytest.raises(ResourceNotFoundException):
        await complaint_service.get_timeline("missing")


async def test_lost_race_retried_on_fresh_read(session_factory, clock, make_complaint):
    complaint = await make_complaint()
    repository = RacingRepository(session_factory, losses=2)
    service = ComplaintService(repository, clock=clock, max_attempts=3)

    updated = await service.update_status(complaint.id, "off-1", ComplaintStatus.ACKNOWLEDGED)

    assert updated.status == ComplaintStatus.ACKNOWLEDGED
    assert repository.attempts == 3


async def test_retries_give_up(session_factory, clock, make_complaint):
    complaint = await make_complaint()
    repository = RacingRepository(session_factory, losses=10)
    service = ComplaintService(repository, clock=clock, max_attempts=3)

    with pytest.raises(ConcurrencyConflictException):
        await service.update_status(complaint.id, "off-1", ComplaintStatus.ACKNOWLEDGED)
    assert repository.attempts == 3


async def test_dashboard_counts_since_midnight(complaint_service, make_complaint, clock):
    first = await make_complaint()
    await make_complaint(escalation_level=3, status=ComplaintStatus.ESCALATED)
    await complaint_service.update_status(first.id, "off-1", ComplaintStatus.RESOLVED)
    clock.advance(hours=2)

    summary = await complaint_service.dashboard()

    assert summary.total == 2
    assert summary.resolved_today == 1
    assert summary.critical == 1
    assert summary.sla_breaches == 1
    assert clock() > T0 + WINDOW
