"""
Triage Application Services
============================

Classification gateway and escalation advisor.

Both wrap a single model call in a hard timeout. Neither raises: the
gateway returns a GatewayOutcome carrying the failure reason, the advisor
returns None, and callers decide what the degraded path looks like.
"""

import asyncio
import json
import re
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from civicwatch.core import LLMException
from civicwatch.shared.infrastructure.logging import get_logger
from civicwatch.triage.domain import (
    ClassificationContext,
    ClassificationPayload,
    ClassificationPromptBuilder,
    ClassificationRequest,
    EscalationPromptBuilder,
    GatewayOutcome,
)

logger = get_logger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_JSON = re.compile(r"\{[\s\S]*\}")


# ========== Service Interfaces ==========

class ILLMClient(ABC):
    """Interface for LLM operations."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
        operation: str = "chat_completion"
    ) -> Any:
        """Generate chat completion."""


def extract_json(text: str) -> dict:
    """
    Pull the JSON object out of a model response.

    Accepts a fenced ```json block or the outermost brace pair.

    Raises:
        LLMException: If no JSON object can be parsed
    """
    match = _FENCED_JSON.search(text)
    candidate = match.group(1) if match else None
    if candidate is None or "{" not in candidate:
        match = _BARE_JSON.search(text)
        candidate = match.group(0) if match else None
    if not candidate:
        raise LLMException("Classification response contained no JSON object")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise LLMException(f"Failed to parse classification response: {e}")
    if not isinstance(data, dict):
        raise LLMException("Classification response was not a JSON object")
    return data


# ========== Application Services ==========

class ClassificationGateway:
    """
    Bounded-time classification of a complaint submission.

    A timeout, transport error or unparseable answer all produce a failed
    GatewayOutcome; the caller falls back to deterministic defaults.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        timeout_seconds: float,
        temperature: float = 0.2,
        max_tokens: int = 800
    ):
        self._llm = llm_client
        self._timeout = timeout_seconds
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def classify(
        self,
        payload: ClassificationRequest,
        context: ClassificationContext
    ) -> GatewayOutcome:
        start_time = time.perf_counter()
        messages = ClassificationPromptBuilder.build_messages(payload, context)

        try:
            response = await asyncio.wait_for(
                self._llm.chat_completion(
                    messages=messages,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                    operation="classification"
                ),
                timeout=self._timeout
            )
            result = ClassificationPayload.normalize(
                extract_json(response.content),
                citizen_text=payload.description
            )
        except asyncio.TimeoutError:
            reason = f"classification timed out after {self._timeout}s"
            logger.warning("Classification timed out", extra={"timeout_seconds": self._timeout})
            return GatewayOutcome(failure_reason=reason)
        except Exception as e:
            logger.warning(
                "Classification failed",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            return GatewayOutcome(failure_reason=f"classification failed: {e}")

        logger.info(
            "Complaint classified",
            extra={
                "category": result.category.value,
                "severity": result.severity.value,
                "confidence_score": result.confidence_score,
                "latency_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return GatewayOutcome(payload=result)


class EscalationAdvisor:
    """One-sentence justification for an escalation that already happened."""

    def __init__(self, llm_client: ILLMClient, timeout_seconds: float):
        self._llm = llm_client
        self._timeout = timeout_seconds

    async def explain(
        self,
        department: str,
        severity: str,
        elapsed_seconds: float,
        status: str
    ) -> Optional[str]:
        """Return the sentence, or None when the model is unavailable."""
        messages = EscalationPromptBuilder.build_messages(
            department, severity, elapsed_seconds, status
        )
        try:
            response = await asyncio.wait_for(
                self._llm.chat_completion(
                    messages=messages,
                    temperature=0.3,
                    max_tokens=120,
                    operation="escalation_advisory"
                ),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Escalation advisory timed out", extra={"timeout_seconds": self._timeout})
            return None
        except Exception as e:
            logger.warning(
                "Escalation advisory failed",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            return None

        text = (response.content or "").strip()
        return text or None
