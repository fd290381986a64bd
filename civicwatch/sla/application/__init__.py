"""
SLA Application Layer
=====================

Contains:
- Services: SLAWatchdog
- Interfaces: IEscalationAdvisor
- DTOs: watchdog API models
"""

from civicwatch.sla.application.dto import TickResponse, WatchdogStatusResponse
from civicwatch.sla.application.services import (
    ADVISORY_FALLBACK_MESSAGE,
    IEscalationAdvisor,
    SLAWatchdog,
    TickResult,
    WatchdogStats,
)

__all__ = [
    "TickResponse",
    "WatchdogStatusResponse",
    "ADVISORY_FALLBACK_MESSAGE",
    "IEscalationAdvisor",
    "SLAWatchdog",
    "TickResult",
    "WatchdogStats",
]
