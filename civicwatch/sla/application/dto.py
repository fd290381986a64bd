"""
SLA Application DTOs
=====================

Response models for the watchdog endpoints.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TickResponse(BaseModel):
    """Result of one watchdog tick."""
    scanned: int = Field(..., description="Overdue complaints returned by the scan")
    escalated: int = Field(..., description="Complaints advanced one ladder step")
    ids: List[str] = Field(default_factory=list)
    skipped: bool = Field(False, description="A tick was already running; nothing was done")
    aborted: bool = Field(False, description="A store failure stopped the batch early")


class PolicyResponse(BaseModel):
    sla_duration_seconds: int
    batch_size: int
    escalation_levels: Dict[int, str]


class WatchdogStatusResponse(BaseModel):
    """Watchdog scheduler state and counters."""
    running: bool
    in_progress: bool
    interval_seconds: int
    runs: int
    skipped_runs: int
    previous_escalated: int
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    policy: PolicyResponse
