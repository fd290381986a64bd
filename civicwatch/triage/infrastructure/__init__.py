"""
Triage Infrastructure Layer
============================

External service adapters for the triage module.
"""

from civicwatch.triage.infrastructure.external import LLMClientAdapter

__all__ = ["LLMClientAdapter"]
