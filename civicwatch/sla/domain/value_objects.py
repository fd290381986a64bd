"""
SLA Value Objects
==================

The SLA policy: how long a complaint may sit before the next escalation,
how many overdue complaints one watchdog tick may advance, and who each
escalation level is addressed to.

Loaded from YAML and swapped atomically on reload; instances are never
mutated.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from civicwatch.config import MAX_ESCALATION_LEVEL


class EscalationLevelConfig(BaseModel):
    """Configuration for a single escalation level."""
    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1, le=MAX_ESCALATION_LEVEL, description="Escalation level (1-based)")
    label: str = Field(description="Who the complaint is escalated to")


DEFAULT_ESCALATION_LEVELS = [
    EscalationLevelConfig(level=1, label="Supervisor"),
    EscalationLevelConfig(level=2, label="Department Head"),
    EscalationLevelConfig(level=3, label="Commissioner"),
]


class SLAPolicy(BaseModel):
    """
    SLA policy loaded from YAML.

    The ladder shape is fixed in the state machine; only the window length,
    batch size and level labels come from here.
    """
    model_config = ConfigDict(frozen=True)

    sla_duration_seconds: int = Field(
        default=86400,
        ge=1,
        description="Window granted at admission and after every escalation"
    )
    batch_size: int = Field(
        default=250,
        ge=1,
        description="Maximum overdue complaints advanced per watchdog tick"
    )
    escalation_levels: List[EscalationLevelConfig] = Field(
        default_factory=lambda: list(DEFAULT_ESCALATION_LEVELS)
    )

    @field_validator("escalation_levels")
    @classmethod
    def validate_levels(cls, v: List[EscalationLevelConfig]) -> List[EscalationLevelConfig]:
        """Fill in default labels for any level the file leaves out."""
        by_level = {esc.level: esc for esc in v}
        if len(by_level) != len(v):
            raise ValueError("escalation levels must be unique")
        for default in DEFAULT_ESCALATION_LEVELS:
            by_level.setdefault(default.level, default)
        return [by_level[level] for level in sorted(by_level)]

    @property
    def sla_duration(self) -> timedelta:
        return timedelta(seconds=self.sla_duration_seconds)

    def label_for(self, level: int) -> str:
        for esc in self.escalation_levels:
            if esc.level == level:
                return esc.label
        return f"Level {level}"


class ISLAPolicyProvider(ABC):
    """Interface for reading the active SLA policy."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Return the current policy snapshot."""


class StaticPolicyProvider(ISLAPolicyProvider):
    """Provider over a fixed policy, for wiring without a config file."""

    def __init__(self, policy: SLAPolicy):
        self._policy = policy

    def get_policy(self) -> SLAPolicy:
        return self._policy
