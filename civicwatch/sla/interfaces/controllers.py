"""
SLA Controllers (API Routes)
=============================

FastAPI routes for the SLA watchdog and dashboard.

Controllers are thin - they delegate to application services.
"""

from fastapi import APIRouter, Depends, Request

from civicwatch.complaints.application import ComplaintService, DashboardResponse
from civicwatch.shared.infrastructure.logging import get_logger
from civicwatch.sla.application import SLAWatchdog, TickResponse, WatchdogStatusResponse
from civicwatch.sla.application.dto import PolicyResponse

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Escalation"])


# ========== Dependencies ==========

def get_watchdog(request: Request) -> SLAWatchdog:
    return request.app.state.container.watchdog


def get_complaint_service(request: Request) -> ComplaintService:
    return request.app.state.container.complaint_service


# ========== Route Handlers ==========

@router.post(
    "/tick",
    response_model=TickResponse,
    summary="Run one watchdog scan now",
    description="""
    Trigger a watchdog scan on demand.

    Uses the same single-flight guard as the scheduled job: if a scan is
    already running this returns immediately with `skipped: true`.
    """
)
async def trigger_tick(watchdog: SLAWatchdog = Depends(get_watchdog)):
    result = await watchdog.tick()
    logger.info("Manual watchdog tick", extra=result.to_dict())
    return TickResponse(**result.to_dict())


@router.get(
    "/watchdog",
    response_model=WatchdogStatusResponse,
    summary="Watchdog scheduler state and counters"
)
async def watchdog_status(request: Request, watchdog: SLAWatchdog = Depends(get_watchdog)):
    container = request.app.state.container
    policy = container.policy_provider.get_policy()
    scheduler = container.scheduler
    stats = watchdog.stats

    return WatchdogStatusResponse(
        running=scheduler is not None and scheduler.is_running,
        in_progress=watchdog.in_progress,
        interval_seconds=scheduler.interval_seconds if scheduler is not None else 0,
        runs=stats.runs,
        skipped_runs=stats.skipped_runs,
        previous_escalated=stats.previous_escalated,
        last_run_at=stats.last_run_at,
        last_error=stats.last_error,
        policy=PolicyResponse(
            sla_duration_seconds=policy.sla_duration_seconds,
            batch_size=policy.batch_size,
            escalation_levels={esc.level: esc.label for esc in policy.escalation_levels}
        )
    )


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Complaint counters",
    description="""
    - **pending**: not resolved
    - **escalated**: escalation level 1 or higher
    - **critical**: escalation level 3
    - **resolved_today**: resolved since 00:00 UTC
    - **sla_breaches**: unresolved with the deadline already passed
    """
)
async def dashboard(service: ComplaintService = Depends(get_complaint_service)):
    summary = await service.dashboard()
    return DashboardResponse.from_summary(summary)


sla_router = router
