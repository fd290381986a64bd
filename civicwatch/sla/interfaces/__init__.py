"""
SLA Interfaces Layer
====================

FastAPI route handlers for the SLA watchdog and dashboard.
"""

from civicwatch.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
