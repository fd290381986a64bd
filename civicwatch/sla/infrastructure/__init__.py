"""
SLA Infrastructure Layer
========================

Contains:
- SLAConfigManager: YAML policy with hot reload
- WatchdogScheduler: APScheduler job driving the watchdog
"""

from civicwatch.sla.infrastructure.external import (
    ConfigFileHandler,
    SLAConfigManager,
    WatchdogScheduler,
)

__all__ = [
    "ConfigFileHandler",
    "SLAConfigManager",
    "WatchdogScheduler",
]
