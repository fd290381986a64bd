import asyncio
from datetime import timedelta

from civicwatch.complaints.infrastructure import SQLAlchemyComplaintRepository
from civicwatch.config import Actor, ComplaintStatus
from civicwatch.core import ConcurrencyConflictException, RepositoryException
from civicwatch.sla.application import ADVISORY_FALLBACK_MESSAGE, SLAWatchdog
from civicwatch.sla.domain import SLAPolicy, StaticPolicyProvider

from conftest import T0, WINDOW, FakeAdvisor


class GatedRepository(SQLAlchemyComplaintRepository):
    """Blocks the scan until released."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def find_overdue(self, now, limit):
        self.entered.set()
        await self.release.wait()
        return await super().find_overdue(now, limit)


class FlakyRepository(SQLAlchemyComplaintRepository):
    """Fails transitions for chosen complaint ids."""

    def __init__(self, session_factory, failures):
        super().__init__(session_factory)
        self.failures = failures

    async def apply_transition(self, snapshot, changes, audit, timeline):
        if snapshot.id in self.failures:
            raise self.failures[snapshot.id]
        return await super().apply_transition(snapshot, changes, audit, timeline)


class ResolvedMidTickRepository(SQLAlchemyComplaintRepository):
    """An official resolves the complaint just before the watchdog commits."""

    def __init__(self, session_factory, complaint_service):
        super().__init__(session_factory)
        self.complaint_service = complaint_service
        self.raced = False

    async def apply_transition(self, snapshot, changes, audit, timeline):
        if not self.raced:
            self.raced = True
            await self.complaint_service.update_status(snapshot.id, "off-1", ComplaintStatus.RESOLVED)
        return await super().apply_transition(snapshot, changes, audit, timeline)


class BrokenScanRepository(SQLAlchemyComplaintRepository):
    async def find_overdue(self, now, limit):
        raise RepositoryException("Record store error during find_overdue")


async def test_idle_tick(watchdog, make_complaint):
    await make_complaint()

    result = await watchdog.tick()

    assert (result.scanned, result.escalated, result.ids) == (0, 0, [])
    assert not result.skipped
    assert watchdog.stats.runs == 1


async def test_first_breach_issues_warning(watchdog, repository, make_complaint, clock):
    complaint = await make_complaint()
    now = clock.advance(hours=1, seconds=1)

    result = await watchdog.tick()
    await watchdog.drain()

    assert result.ids == [complaint.id]
    stored = await repository.get_by_id(complaint.id)
    assert stored.status == ComplaintStatus.SLA_WARNING
    assert stored.escalation_level == 1
    assert stored.next_escalation_at == now + WINDOW
    assert stored.version == 2

    audit = await repository.list_audit(complaint.id)
    assert audit[-1].action == "SLA warning issued"
    assert audit[-1].actor == Actor.SYSTEM
    assert audit[-1].details["previous_level"] == 0
    assert audit[-1].details["new_level"] == 1
    assert audit[-1].details["escalated_to"] == "Supervisor"

    timeline = await repository.list_timeline(complaint.id)
    assert [entry.action for entry in timeline] == ["sla_warning", "ai_escalation_justification"]
    assert timeline[0].message == "System auto-escalated due to SLA breach (1h elapsed, no action)."
    assert timeline[1].message.startswith("Advisory justification: ")


async def test_one_step_per_tick(watchdog, repository, make_complaint, clock):
    complaint = await make_complaint()
    clock.advance(hours=5)

    await watchdog.tick()
    second = await watchdog.tick()

    stored = await repository.get_by_id(complaint.id)
    assert stored.escalation_level == 1
    assert second.escalated == 0


async def test_full_ladder_ends_in_auto_resolve(watchdog, repository, make_complaint, clock, advisor):
    complaint = await make_complaint()
    seen = []

    for _ in range(4):
        clock.advance(hours=1, seconds=1)
        await watchdog.tick()
        stored = await repository.get_by_id(complaint.id)
        seen.append((stored.escalation_level, stored.status))
    await watchdog.drain()

    assert seen == [
        (1, ComplaintStatus.SLA_WARNING),
        (2, ComplaintStatus.ESCALATED),
        (3, ComplaintStatus.ESCALATED),
        (3, ComplaintStatus.RESOLVED),
    ]
    assert stored.next_escalation_at is None
    audit = [entry.action for entry in await repository.list_audit(complaint.id)]
    assert audit == [
        "SLA warning issued",
        "Escalated to level 2",
        "Escalated to level 3",
        "Auto-resolved after final escalation",
    ]
    assert [call["status"] for call in advisor.calls] == ["sla_warning", "escalated", "escalated", "resolved"]

    clock.advance(days=2)
    assert (await watchdog.tick()).scanned == 0


async def test_batch_size_takes_most_overdue_first(repository, advisor, clock, make_complaint):
    await make_complaint(complaint_id="b", next_escalation_at=T0 - timedelta(hours=2))
    await make_complaint(complaint_id="c", next_escalation_at=T0 - timedelta(hours=1))
    await make_complaint(complaint_id="a", next_escalation_at=T0 - timedelta(hours=3))
    watchdog = SLAWatchdog(
        repository,
        StaticPolicyProvider(SLAPolicy(sla_duration_seconds=3600, batch_size=2)),
        advisor=advisor,
        clock=clock
    )

    result = await watchdog.tick()

    assert result.scanned == 2
    assert result.ids == ["a", "b"]


async def test_overlapping_tick_is_a_noop(session_factory, policy_provider, clock, make_complaint):
    repository = GatedRepository(session_factory)
    watchdog = SLAWatchdog(repository, policy_provider, clock=clock)
    await make_complaint(next_escalation_at=T0 - timedelta(minutes=1))

    first = asyncio.create_task(watchdog.tick())
    await repository.entered.wait()
    assert watchdog.in_progress

    second = await watchdog.tick()

    assert second.skipped
    assert second.escalated == 0
    second.ids.append("stale")
    third = await watchdog.tick()
    assert third.skipped
    assert third.ids == []
    assert watchdog.stats.skipped_runs == 2

    repository.release.set()
    result = await first
    assert result.escalated == 1
    assert not watchdog.in_progress


async def test_conflicting_complaint_skipped(session_factory, policy_provider, clock, make_complaint):
    await make_complaint(complaint_id="raced", next_escalation_at=T0 - timedelta(hours=2))
    await make_complaint(complaint_id="clean", next_escalation_at=T0 - timedelta(hours=1))
    repository = FlakyRepository(session_factory, {"raced": ConcurrencyConflictException("raced", 1)})
    watchdog = SLAWatchdog(repository, policy_provider, clock=clock)

    result = await watchdog.tick()

    assert result.scanned == 2
    assert result.ids == ["clean"]
    assert not result.aborted


async def test_official_resolution_wins_over_escalation(
    session_factory, policy_provider, clock, complaint_service, make_complaint
):
    complaint = await make_complaint(next_escalation_at=T0 - timedelta(hours=1))
    repository = ResolvedMidTickRepository(session_factory, complaint_service)
    watchdog = SLAWatchdog(repository, policy_provider, clock=clock)

    result = await watchdog.tick()

    assert result.scanned == 1
    assert result.escalated == 0
    assert not result.aborted
    stored = await repository.get_by_id(complaint.id)
    assert stored.status == ComplaintStatus.RESOLVED
    assert stored.escalation_level == 0
    assert stored.next_escalation_at is None
    audit = await repository.list_audit(complaint.id)
    assert audit[-1].action.startswith("Resolved")


async def test_store_failure_aborts_batch(session_factory, policy_provider, clock, make_complaint):
    await make_complaint(complaint_id="first", next_escalation_at=T0 - timedelta(hours=3))
    await make_complaint(complaint_id="broken", next_escalation_at=T0 - timedelta(hours=2))
    await make_complaint(complaint_id="never", next_escalation_at=T0 - timedelta(hours=1))
    repository = FlakyRepository(session_factory, {"broken": RepositoryException("disk full")})
    watchdog = SLAWatchdog(repository, policy_provider, clock=clock)

    result = await watchdog.tick()

    assert result.aborted
    assert result.ids == ["first"]
    assert watchdog.stats.last_error == "disk full"
    assert (await repository.get_by_id("never")).escalation_level == 0


async def test_scan_failure_reported_not_raised(session_factory, policy_provider, clock):
    watchdog = SLAWatchdog(BrokenScanRepository(session_factory), policy_provider, clock=clock)

    result = await watchdog.tick()

    assert result.aborted
    assert result.scanned == 0
    assert watchdog.stats.last_error is not None


async def test_advisory_failure_records_fallback(repository, policy_provider, clock, make_complaint):
    complaint = await make_complaint(next_escalation_at=T0)
    watchdog = SLAWatchdog(repository, policy_provider, advisor=FakeAdvisor(text=None), clock=clock)

    await watchdog.tick()
    await watchdog.drain()

    timeline = await repository.list_timeline(complaint.id)
    assert timeline[-1].action == "ai_escalation_justification_failed"
    assert timeline[-1].message == ADVISORY_FALLBACK_MESSAGE


async def test_raising_advisor_does_not_fail_tick(repository, policy_provider, clock, make_complaint):
    class RaisingAdvisor(FakeAdvisor):
        async def explain(self, department, severity, elapsed_seconds, status):
            raise RuntimeError("model offline")

    complaint = await make_complaint(next_escalation_at=T0)
    watchdog = SLAWatchdog(repository, policy_provider, advisor=RaisingAdvisor(), clock=clock)

    result = await watchdog.tick()
    await watchdog.drain()

    assert result.escalated == 1
    timeline = await repository.list_timeline(complaint.id)
    assert timeline[-1].action == "ai_escalation_justification_failed"
