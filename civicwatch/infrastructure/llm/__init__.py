"""
LLM Client Infrastructure
==========================

Wrapper around an OpenAI-compatible chat endpoint (Gemini by default)
providing a clean interface for classification and advisory calls.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the triage layer depends on abstractions,
not concrete implementations.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI

from civicwatch.config import settings
from civicwatch.core import ConfigurationException, LLMException
from civicwatch.shared.infrastructure.grafana import get_grafana_exporter


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Only chat completion is needed: classification and escalation
    justifications are both prompt-in, text-out.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI SDK client pointed at any OpenAI-compatible base URL.

    With the default settings this talks to Gemini's OpenAI endpoint, which
    accepts image parts for vision classification.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None
    ):
        self._api_key = api_key or settings.llm_api_key
        if not self._api_key:
            raise ConfigurationException("LLM API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or settings.llm_base_url
        )
        self._model = model or settings.llm_model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for metrics (classification, escalation_advisory)

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if not response.choices or response.choices[0].message.content is None:
            raise LLMException("Chat completion returned no content")

        content = response.choices[0].message.content
        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0

        exporter = get_grafana_exporter()
        if exporter.is_enabled():
            await exporter.export_llm_metrics(
                model=self._model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                latency_ms=latency_ms,
                operation=operation
            )

        return ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Returns predictable responses without calling external APIs.
    """

    _KEYWORDS = {
        "pothole": ("pothole", "high", 7),
        "garbage": ("garbage", "medium", 5),
        "streetlight": ("streetlight", "medium", 4),
        "drain": ("drainage", "high", 6),
        "leak": ("water_leak", "high", 7),
    }

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return mock response based on operation type."""
        user_content = str(messages[-1].get("content", "")).lower() if messages else ""

        if "classif" in operation.lower():
            category, severity, priority = "other", "medium", 5
            for keyword, values in self._KEYWORDS.items():
                if keyword in user_content:
                    category, severity, priority = values
                    break
            mock_response = {
                "description": "Mock: civic issue visible at the reported location.",
                "category": category,
                "severity": severity.upper(),
                "priority": priority,
                "confidence_score": 0.85,
                "reasoning": "Mock: category inferred from report keywords."
            }
            content = f"```json\n{json.dumps(mock_response, indent=2)}\n```"
        elif "advisory" in operation.lower():
            content = "The complaint has stayed unresolved past its service window, so escalation is warranted."
        else:
            content = "This is a mock LLM response for testing purposes."

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=100
        )


class UnconfiguredLLMClient(ILLMClient):
    """
    Stands in when no API key is set.

    Every call raises, so classification reports a failed outcome and
    admission records fallback defaults instead of invented output.
    """

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        raise ConfigurationException("LLM API key not configured")
