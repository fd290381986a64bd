"""
Triage Application Layer
=========================

Contains:
- Services: ClassificationGateway, EscalationAdvisor
- Interfaces: ILLMClient
"""

from civicwatch.triage.application.services import (
    ClassificationGateway,
    EscalationAdvisor,
    ILLMClient,
    extract_json,
)

__all__ = [
    "ClassificationGateway",
    "EscalationAdvisor",
    "ILLMClient",
    "extract_json",
]
