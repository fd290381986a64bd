"""
Triage Domain Layer
===================

Domain layer for complaint classification.

Contains:
- Value Objects: ClassificationPayload, ClassificationRequest,
  ClassificationContext, GatewayOutcome
- Prompt builders for classification and escalation advisories

This layer is framework-agnostic and contains pure business logic.
"""

from civicwatch.triage.domain.entities import (
    ClassificationContext,
    ClassificationPayload,
    ClassificationPromptBuilder,
    ClassificationRequest,
    EscalationPromptBuilder,
    GatewayOutcome,
    derive_authenticity,
)

__all__ = [
    "ClassificationContext",
    "ClassificationPayload",
    "ClassificationPromptBuilder",
    "ClassificationRequest",
    "EscalationPromptBuilder",
    "GatewayOutcome",
    "derive_authenticity",
]
