"""
Complaints Infrastructure Repositories
=======================================

SQLAlchemy implementation of IComplaintRepository.

Each method runs in its own short transaction. Mutations of an existing
complaint are a single conditional UPDATE on (id, version, status) so a
concurrent writer can never be silently overwritten.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from civicwatch.config import (
    MAX_ESCALATION_LEVEL,
    Actor,
    AuthenticityStatus,
    ComplaintStatus,
    IssueCategory,
    Severity,
)
from civicwatch.complaints.application.services import IComplaintRepository
from civicwatch.complaints.domain import (
    AuditEntry,
    Complaint,
    ComplaintChanges,
    ComplaintSummary,
    TimelineEntry,
    decision_from_document,
    decision_to_document,
)
from civicwatch.complaints.infrastructure.models import (
    AuditEntryModel,
    ComplaintModel,
    TimelineEntryModel,
)
from civicwatch.core import (
    ConcurrencyConflictException,
    RepositoryException,
    StoreBackpressureException,
)
from civicwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_RESOLVED = ComplaintStatus.RESOLVED.value


def _to_entity(model: ComplaintModel) -> Complaint:
    return Complaint(
        id=model.id,
        citizen_id=model.citizen_id,
        citizen_name=model.citizen_name,
        title=model.title,
        description=model.description,
        location_name=model.location_name,
        latitude=model.latitude,
        longitude=model.longitude,
        category=IssueCategory(model.category),
        severity=Severity(model.severity),
        priority=model.priority,
        department=model.department,
        confidence_score=model.confidence_score,
        authenticity_status=AuthenticityStatus(model.authenticity_status),
        agent_decision=decision_from_document(model.agent_decision),
        status=ComplaintStatus(model.status),
        escalation_level=model.escalation_level,
        next_escalation_at=model.next_escalation_at,
        assigned_official_id=model.assigned_official_id,
        version=model.version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _audit_model(complaint_id: str, entry: AuditEntry) -> AuditEntryModel:
    return AuditEntryModel(
        complaint_id=complaint_id,
        timestamp=entry.timestamp,
        action=entry.action,
        actor=entry.actor.value,
        details=entry.details,
    )


def _timeline_model(complaint_id: str, entry: TimelineEntry) -> TimelineEntryModel:
    return TimelineEntryModel(
        complaint_id=complaint_id,
        type=entry.type.value,
        action=entry.action,
        message=entry.message,
        timestamp=entry.timestamp,
    )


class SQLAlchemyComplaintRepository(IComplaintRepository):
    """
    SQLAlchemy implementation of complaint repository.

    Takes a session factory rather than a session: the watchdog and the
    HTTP handlers each need independent transactions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """Open a session and transaction, translating driver errors."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except OperationalError as e:
            logger.error(
                "Record store unavailable",
                extra={"operation": operation, "error": str(e.orig) if e.orig else str(e)}
            )
            raise StoreBackpressureException(
                f"Record store unavailable during {operation}",
                {"operation": operation}
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "Record store error",
                extra={"operation": operation, "error_type": type(e).__name__, "error": str(e)}
            )
            raise RepositoryException(
                f"Record store error during {operation}",
                {"operation": operation}
            ) from e

    async def create(
        self,
        complaint: Complaint,
        audit: List[AuditEntry],
        timeline: List[TimelineEntry]
    ) -> Complaint:
        """Insert the complaint and its initial log entries atomically."""
        async with self._transaction("create") as session:
            session.add(ComplaintModel(
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
                confidence_score=complaint.confidence_score,
                authenticity_status=complaint.authenticity_status.value,
                agent_decision=decision_to_document(complaint.agent_decision),
                status=complaint.status.value,
                escalation_level=complaint.escalation_level,
                next_escalation_at=complaint.next_escalation_at,
                assigned_official_id=complaint.assigned_official_id,
                version=complaint.version,
                created_at=complaint.created_at,
                updated_at=complaint.updated_at,
            ))
            # Parent row first so the log rows satisfy their foreign key
            await session.flush()
            session.add_all([_audit_model(complaint.id, entry) for entry in audit])
            session.add_all([_timeline_model(complaint.id, entry) for entry in timeline])
        return complaint

    async def get_by_id(self, complaint_id: str) -> Optional[Complaint]:
        async with self._transaction("get_by_id") as session:
            model = await session.get(ComplaintModel, complaint_id)
            return _to_entity(model) if model else None

    async def find_overdue(self, now: datetime, limit: int) -> List[Complaint]:
        """Earliest deadlines first, so a capped batch always takes the most overdue."""
        stmt = (
            select(ComplaintModel)
            .where(
                ComplaintModel.status != _RESOLVED,
                ComplaintModel.next_escalation_at.is_not(None),
                ComplaintModel.next_escalation_at <= now,
            )
            .order_by(ComplaintModel.next_escalation_at.asc(), ComplaintModel.id.asc())
            .limit(limit)
        )
        async with self._transaction("find_overdue") as session:
            result = await session.execute(stmt)
            return [_to_entity(model) for model in result.scalars().all()]

    async def apply_transition(
        self,
        snapshot: Complaint,
        changes: ComplaintChanges,
        audit: AuditEntry,
        timeline: TimelineEntry
    ) -> Complaint:
        # Domain checks run before touching the store
        updated = snapshot.apply(changes)

        stmt = (
            update(ComplaintModel)
            .where(
                ComplaintModel.id == snapshot.id,
                ComplaintModel.version == snapshot.version,
                ComplaintModel.status != _RESOLVED,
            )
            .values(
                status=updated.status.value,
                escalation_level=updated.escalation_level,
                next_escalation_at=updated.next_escalation_at,
                assigned_official_id=updated.assigned_official_id,
                updated_at=updated.updated_at,
                version=updated.version,
            )
            .execution_options(synchronize_session=False)
        )

        async with self._transaction("apply_transition") as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                raise ConcurrencyConflictException(snapshot.id, snapshot.version)
            session.add(_audit_model(snapshot.id, audit))
            session.add(_timeline_model(snapshot.id, timeline))

        return updated

    async def append_timeline(self, complaint_id: str, entry: TimelineEntry) -> None:
        async with self._transaction("append_timeline") as session:
            session.add(_timeline_model(complaint_id, entry))

    async def list_audit(self, complaint_id: str) -> List[AuditEntry]:
        stmt = (
            select(AuditEntryModel)
            .where(AuditEntryModel.complaint_id == complaint_id)
            .order_by(AuditEntryModel.seq.asc())
        )
        async with self._transaction("list_audit") as session:
            result = await session.execute(stmt)
            return [
                AuditEntry(
                    timestamp=row.timestamp,
                    action=row.action,
                    actor=Actor(row.actor),
                    details=row.details,
                )
                for row in result.scalars().all()
            ]

    async def list_timeline(self, complaint_id: str) -> List[TimelineEntry]:
        stmt = (
            select(TimelineEntryModel)
            .where(TimelineEntryModel.complaint_id == complaint_id)
            .order_by(TimelineEntryModel.seq.asc())
        )
        async with self._transaction("list_timeline") as session:
            result = await session.execute(stmt)
            return [
                TimelineEntry(
                    type=Actor(row.type),
                    action=row.action,
                    message=row.message,
                    timestamp=row.timestamp,
                )
                for row in result.scalars().all()
            ]

    async def summarize(self, now: datetime, since: datetime) -> ComplaintSummary:
        unresolved = ComplaintModel.status != _RESOLVED

        def count_where(*conditions):
            return func.coalesce(func.sum(case((and_(*conditions), 1), else_=0)), 0)

        totals_stmt = select(
            func.count(ComplaintModel.id),
            count_where(unresolved),
            count_where(ComplaintModel.escalation_level >= 1),
            count_where(ComplaintModel.escalation_level >= MAX_ESCALATION_LEVEL),
            count_where(ComplaintModel.status == _RESOLVED, ComplaintModel.updated_at >= since),
            count_where(unresolved, ComplaintModel.next_escalation_at <= now),
        )
        by_status_stmt = (
            select(ComplaintModel.status, func.count(ComplaintModel.id))
            .group_by(ComplaintModel.status)
        )

        async with self._transaction("summarize") as session:
            totals = (await session.execute(totals_stmt)).one()
            by_status = {status: count for status, count in (await session.execute(by_status_stmt)).all()}

        total, pending, escalated, critical, resolved_today, sla_breaches = (int(v or 0) for v in totals)
        return ComplaintSummary(
            total=total,
            pending=pending,
            escalated=escalated,
            critical=critical,
            resolved_today=resolved_today,
            sla_breaches=sla_breaches,
            by_status=by_status,
        )
