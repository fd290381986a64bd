"""
SLA Domain Layer
================

Contains:
- State machine: escalation ladder and official transition rules
- Value Objects: SLAPolicy, EscalationLevelConfig
- Policy provider interface

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from civicwatch.sla.domain.state_machine import (
    OFFICIAL_TARGETS,
    EscalationStep,
    check_assignment,
    check_official_transition,
    next_escalation,
)
from civicwatch.sla.domain.value_objects import (
    EscalationLevelConfig,
    ISLAPolicyProvider,
    SLAPolicy,
    StaticPolicyProvider,
)

__all__ = [
    "OFFICIAL_TARGETS",
    "EscalationStep",
    "check_assignment",
    "check_official_transition",
    "next_escalation",
    "EscalationLevelConfig",
    "ISLAPolicyProvider",
    "SLAPolicy",
    "StaticPolicyProvider",
]
