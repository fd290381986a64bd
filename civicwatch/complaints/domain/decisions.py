"""
Agent Decisions
===============

Record of how a complaint's classification was reached.

A decision is either an ExternalDecision, which carries the normalized
model payload verbatim, or a FallbackDecision, which carries only the
reason the model could not be used. The fallback variant has no `raw`
attribute at all, so nothing downstream can read model output for it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from civicwatch.config import DecisionSource
from civicwatch.triage.domain import ClassificationPayload


@dataclass(frozen=True)
class ExternalDecision:
    raw: ClassificationPayload
    decided_at: datetime

    @property
    def source(self) -> DecisionSource:
        return DecisionSource.EXTERNAL


@dataclass(frozen=True)
class FallbackDecision:
    reason: str
    decided_at: datetime

    @property
    def source(self) -> DecisionSource:
        return DecisionSource.FALLBACK


AgentDecision = Union[ExternalDecision, FallbackDecision]


def decision_to_document(decision: AgentDecision) -> dict:
    """Serialize a decision to the JSON document stored on the complaint row."""
    if isinstance(decision, ExternalDecision):
        return {
            "source": DecisionSource.EXTERNAL.value,
            "raw": decision.raw.to_dict(),
            "decided_at": decision.decided_at.isoformat(),
        }
    elif isinstance(decision, FallbackDecision):
        return {
            "source": DecisionSource.FALLBACK.value,
            "reason": decision.reason,
            "decided_at": decision.decided_at.isoformat(),
        }
    else:
        raise TypeError(f"Unknown decision type: {type(decision).__name__}")


def decision_from_document(document: dict) -> AgentDecision:
    """
    Decode a stored decision document.

    Raises:
        ValueError: If the source discriminator is missing or unknown
    """
    source = DecisionSource(document["source"])
    decided_at = datetime.fromisoformat(document["decided_at"])

    if source is DecisionSource.EXTERNAL:
        return ExternalDecision(
            raw=ClassificationPayload.from_dict(document["raw"]),
            decided_at=decided_at,
        )
    elif source is DecisionSource.FALLBACK:
        return FallbackDecision(reason=document["reason"], decided_at=decided_at)
    else:
        raise ValueError(f"Unknown decision source: {source}")
