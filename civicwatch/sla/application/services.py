"""
SLA Application Services
=========================

The SLA watchdog: finds complaints whose deadline has passed and advances
each one a single step up the escalation ladder.

Guarantees:
- Single-flight: overlapping tick() calls return a no-op result at once.
- Every advance is a version-checked conditional update; a complaint that
  changed since it was read is skipped, never overwritten.
- A store failure stops the batch; it is logged, not raised.
- Advisories run after the tick in tracked background tasks and can
  never block or fail it.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Set

from civicwatch.config import Actor, ComplaintStatus
from civicwatch.complaints.application.services import IComplaintRepository
from civicwatch.complaints.domain import AuditEntry, Complaint, ComplaintChanges, TimelineEntry
from civicwatch.core import ConcurrencyConflictException, InvalidTransitionException
from civicwatch.shared import utcnow
from civicwatch.shared.infrastructure.grafana import GrafanaOTLPExporter
from civicwatch.shared.infrastructure.logging import get_logger, log_latency
from civicwatch.sla.domain import EscalationStep, ISLAPolicyProvider, SLAPolicy, next_escalation

logger = get_logger(__name__)

ADVISORY_FALLBACK_MESSAGE = "System escalation enforced due to SLA breach."


# ========== Service Interfaces ==========

class IEscalationAdvisor(ABC):
    """Interface for the escalation justification service."""

    @abstractmethod
    async def explain(
        self,
        department: str,
        severity: str,
        elapsed_seconds: float,
        status: str
    ) -> Optional[str]:
        """One sentence, or None when unavailable."""


# ========== Results ==========

@dataclass(frozen=True)
class TickResult:
    """Outcome of one watchdog tick."""
    scanned: int
    escalated: int
    ids: List[str]
    skipped: bool = False
    aborted: bool = False

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "escalated": self.escalated,
            "ids": list(self.ids),
            "skipped": self.skipped,
            "aborted": self.aborted,
        }


@dataclass
class WatchdogStats:
    runs: int = 0
    skipped_runs: int = 0
    previous_escalated: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None


@dataclass(frozen=True)
class _AdvisoryRequest:
    complaint_id: str
    department: str
    severity: str
    status: str
    elapsed_seconds: float


# ========== Application Services ==========

class SLAWatchdog:
    """
    Advances overdue complaints along the escalation ladder.

    Owns its lock and its background advisory tasks; call `aclose()` on
    shutdown to cancel anything still pending.
    """

    def __init__(
        self,
        repository: IComplaintRepository,
        policy_provider: ISLAPolicyProvider,
        advisor: Optional[IEscalationAdvisor] = None,
        clock: Callable[[], datetime] = utcnow,
        metrics_exporter: Optional[GrafanaOTLPExporter] = None
    ):
        self._repository = repository
        self._policy_provider = policy_provider
        self._advisor = advisor
        self._clock = clock
        self._metrics = metrics_exporter
        self._lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()
        self.stats = WatchdogStats()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    async def tick(self) -> TickResult:
        """Run one scan; returns immediately with a no-op if one is already running."""
        if self._lock.locked():
            self.stats.skipped_runs += 1
            logger.debug("Watchdog tick skipped, previous tick still running")
            return TickResult(scanned=0, escalated=0, ids=[], skipped=True)

        async with self._lock:
            return await self._run()

    async def _run(self) -> TickResult:
        start_time = time.perf_counter()
        now = self._clock()
        policy = self._policy_provider.get_policy()
        previous_escalated = self.stats.previous_escalated

        try:
            with log_latency(logger, "watchdog_scan", batch_size=policy.batch_size):
                candidates = await self._repository.find_overdue(now, policy.batch_size)
        except Exception as e:
            self._record_run(now, escalated=0, error=str(e))
            logger.error(
                "Watchdog scan failed",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            return TickResult(scanned=0, escalated=0, ids=[], aborted=True)

        advanced: List[str] = []
        advisories: List[_AdvisoryRequest] = []
        aborted = False
        error: Optional[str] = None

        for candidate in candidates:
            try:
                fresh = await self._repository.get_by_id(candidate.id)
                # Resolved or re-scheduled since the scan
                if fresh is None or not fresh.is_overdue(now):
                    continue

                step = next_escalation(fresh.escalation_level, now, policy.sla_duration)
                changes, audit, timeline = self._plan(fresh, step, now, policy)
                await self._repository.apply_transition(fresh, changes, audit, timeline)
            except (ConcurrencyConflictException, InvalidTransitionException):
                logger.debug("Watchdog skipped complaint changed concurrently", extra={"complaint_id": candidate.id})
                continue
            except Exception as e:
                aborted = True
                error = str(e)
                logger.error(
                    "Watchdog batch aborted",
                    extra={
                        "complaint_id": candidate.id,
                        "error_type": type(e).__name__,
                        "error": str(e),
                        "advanced_before_abort": len(advanced)
                    }
                )
                break

            advanced.append(fresh.id)
            advisories.append(_AdvisoryRequest(
                complaint_id=fresh.id,
                department=fresh.department,
                severity=fresh.severity.value,
                status=step.status.value,
                elapsed_seconds=max(1.0, (now - fresh.created_at).total_seconds())
            ))

        self._record_run(now, escalated=len(advanced), error=error)
        duration_ms = int((time.perf_counter() - start_time) * 1000)

        if advanced:
            logger.info(
                "Watchdog advanced complaints",
                extra={"scanned": len(candidates), "escalated": len(advanced), "ids": advanced}
            )
        if advisories and self._advisor is not None:
            self._spawn(self._attach_advisories(advisories))
        if self._metrics is not None and self._metrics.is_enabled():
            self._spawn(self._metrics.export_watchdog_metrics(
                scanned=len(candidates),
                escalated=len(advanced),
                previous_escalated=previous_escalated,
                duration_ms=duration_ms
            ))

        return TickResult(
            scanned=len(candidates),
            escalated=len(advanced),
            ids=advanced,
            aborted=aborted
        )

    def _record_run(self, now: datetime, escalated: int, error: Optional[str]) -> None:
        self.stats.runs += 1
        self.stats.previous_escalated = escalated
        self.stats.last_run_at = now
        self.stats.last_error = error

    @staticmethod
    def _plan(
        complaint: Complaint,
        step: EscalationStep,
        now: datetime,
        policy: SLAPolicy
    ) -> tuple[ComplaintChanges, AuditEntry, TimelineEntry]:
        """Audit and timeline wording for one ladder step."""
        elapsed_hours = max(1, round((now - complaint.created_at).total_seconds() / 3600))

        if step.auto_resolved:
            audit_action = "Auto-resolved after final escalation"
            timeline_action = "auto_resolved"
            message = (
                f"System closed the complaint after the final escalation window lapsed "
                f"({elapsed_hours}h elapsed)."
            )
        elif step.status == ComplaintStatus.SLA_WARNING:
            audit_action = "SLA warning issued"
            timeline_action = "sla_warning"
            message = f"System auto-escalated due to SLA breach ({elapsed_hours}h elapsed, no action)."
        else:
            audit_action = f"Escalated to level {step.level}"
            timeline_action = "escalated"
            message = (
                f"System auto-escalated due to SLA breach ({elapsed_hours}h elapsed, no action). "
                f"Escalated to {policy.label_for(step.level)}."
            )

        changes = ComplaintChanges(
            status=step.status,
            escalation_level=step.level,
            next_escalation_at=step.next_escalation_at,
            updated_at=now
        )
        audit = AuditEntry(
            timestamp=now,
            action=audit_action,
            actor=Actor.SYSTEM,
            details={
                "previous_level": step.previous_level,
                "new_level": step.level,
                "previous_deadline": complaint.next_escalation_at.isoformat(),
                "new_deadline": step.next_escalation_at.isoformat() if step.next_escalation_at else None,
                "escalated_to": policy.label_for(step.level),
            }
        )
        timeline = TimelineEntry(type=Actor.SYSTEM, action=timeline_action, message=message, timestamp=now)
        return changes, audit, timeline

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _attach_advisories(self, requests: List[_AdvisoryRequest]) -> None:
        for req in requests:
            try:
                text = await self._advisor.explain(
                    department=req.department,
                    severity=req.severity,
                    elapsed_seconds=req.elapsed_seconds,
                    status=req.status
                )
            except Exception as e:
                logger.warning(
                    "Escalation advisory raised",
                    extra={"complaint_id": req.complaint_id, "error": str(e)}
                )
                text = None

            if text:
                entry = TimelineEntry(
                    type=Actor.SYSTEM,
                    action="ai_escalation_justification",
                    message=f"Advisory justification: {text}",
                    timestamp=self._clock()
                )
            else:
                entry = TimelineEntry(
                    type=Actor.SYSTEM,
                    action="ai_escalation_justification_failed",
                    message=ADVISORY_FALLBACK_MESSAGE,
                    timestamp=self._clock()
                )

            try:
                await self._repository.append_timeline(req.complaint_id, entry)
            except Exception as e:
                logger.warning(
                    "Failed to record escalation advisory",
                    extra={"complaint_id": req.complaint_id, "error": str(e)}
                )

    async def drain(self) -> None:
        """Wait for pending background tasks to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel pending background tasks."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
