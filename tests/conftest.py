"""
Shared fixtures.

Every test gets its own SQLite file, a controllable clock, and fakes for
the model-backed services.
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from civicwatch.complaints.application import (
    AdmissionService,
    ComplaintService,
    IClassificationGateway,
)
from civicwatch.complaints.domain import Complaint, ExternalDecision, SubmissionPayload
from civicwatch.complaints.infrastructure import SQLAlchemyComplaintRepository
from civicwatch.config import AuthenticityStatus, ComplaintStatus, IssueCategory, Severity
from civicwatch.infrastructure.database import create_tables
from civicwatch.sla.application import IEscalationAdvisor, SLAWatchdog
from civicwatch.sla.domain import SLAPolicy, StaticPolicyProvider
from civicwatch.triage.domain import ClassificationPayload, GatewayOutcome, derive_authenticity

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
WINDOW = timedelta(hours=1)


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def classification(
    confidence: float = 0.85,
    category: IssueCategory = IssueCategory.POTHOLE,
    severity: Severity = Severity.HIGH,
    description: str = "Large pothole in the left lane."
) -> ClassificationPayload:
    return ClassificationPayload(
        description=description,
        category=category,
        severity=severity,
        priority=7,
        confidence_score=confidence,
        authenticity_status=derive_authenticity(confidence),
        reasoning="Visible road surface damage.",
    )


class FakeGateway(IClassificationGateway):
    def __init__(self, outcome: Optional[GatewayOutcome] = None):
        self.outcome = outcome or GatewayOutcome(payload=classification())
        self.calls = []

    async def classify(self, payload, context) -> GatewayOutcome:
        self.calls.append((payload, context))
        return self.outcome


class FakeAdvisor(IEscalationAdvisor):
    def __init__(self, text: Optional[str] = "Unattended for a full window, escalation is warranted."):
        self.text = text
        self.calls: List[dict] = []

    async def explain(self, department, severity, elapsed_seconds, status):
        self.calls.append({
            "department": department,
            "severity": severity,
            "elapsed_seconds": elapsed_seconds,
            "status": status,
        })
        return self.text


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'civicwatch.db'}")
    await create_tables(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def repository(session_factory) -> SQLAlchemyComplaintRepository:
    return SQLAlchemyComplaintRepository(session_factory)


@pytest.fixture
def policy_provider() -> StaticPolicyProvider:
    return StaticPolicyProvider(SLAPolicy(sla_duration_seconds=int(WINDOW.total_seconds()), batch_size=10))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def advisor() -> FakeAdvisor:
    return FakeAdvisor()


@pytest.fixture
def admission(repository, gateway, policy_provider, clock) -> AdmissionService:
    ids = (f"cmp-{n:04d}" for n in itertools.count(1))
    return AdmissionService(repository, gateway, policy_provider, clock=clock, id_factory=lambda: next(ids))


@pytest.fixture
def complaint_service(repository, clock) -> ComplaintService:
    return ComplaintService(repository, clock=clock)


@pytest.fixture
def watchdog(repository, policy_provider, advisor, clock) -> SLAWatchdog:
    return SLAWatchdog(repository, policy_provider, advisor=advisor, clock=clock)


@pytest.fixture
def submission() -> SubmissionPayload:
    return SubmissionPayload(
        citizen_id="citizen-42",
        citizen_name="Asha Rao",
        title="Deep pothole near bus stop",
        location_name="MG Road, Ward 12",
        description="Cars swerve into traffic to avoid it.",
        latitude=12.9756,
        longitude=77.6050,
    )


@pytest.fixture
def make_complaint(repository, clock):
    """Store a complaint directly, bypassing admission."""
    counter = itertools.count(1)

    async def _make(
        escalation_level: int = 0,
        status: ComplaintStatus = ComplaintStatus.ANALYZED,
        next_escalation_at: Optional[datetime] = None,
        complaint_id: Optional[str] = None,
        assigned_official_id: Optional[str] = None,
    ) -> Complaint:
        now = clock()
        deadline = next_escalation_at
        if deadline is None and status != ComplaintStatus.RESOLVED:
            deadline = now + WINDOW
        complaint = Complaint(
            id=complaint_id or f"seed-{next(counter):04d}",
            citizen_id="citizen-7",
            citizen_name="Ravi",
            title="Overflowing bin",
            description="Garbage has not been collected for a week.",
            location_name="Market Street",
            category=IssueCategory.GARBAGE,
            severity=Severity.MEDIUM,
            priority=5,
            department="Sanitation",
            confidence_score=0.9,
            authenticity_status=AuthenticityStatus.REAL,
            agent_decision=ExternalDecision(
                raw=classification(0.9, IssueCategory.GARBAGE, Severity.MEDIUM),
                decided_at=now
            ),
            status=status,
            escalation_level=escalation_level,
            next_escalation_at=deadline,
            assigned_official_id=assigned_official_id,
            created_at=now,
            updated_at=now,
        )
        return await repository.create(complaint, [], [])

    return _make
