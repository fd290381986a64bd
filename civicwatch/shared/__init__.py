"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (complaints, sla,
triage).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add complaint or escalation business logic to the shared kernel.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time; the default clock for every service."""
    return datetime.now(timezone.utc)
