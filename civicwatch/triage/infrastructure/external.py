"""
Triage External Service Adapters
==================================

Implements the application-layer ILLMClient with the infrastructure
clients: the OpenAI-compatible client, the mock when `mock_llm` is set, or
a client that always fails when no API key is configured.
"""

from typing import Any, List

from civicwatch.config import Settings
from civicwatch.infrastructure.llm import (
    ILLMClient as InfrastructureLLMClient,
    MockLLMClient,
    OpenAILLMClient,
    UnconfiguredLLMClient,
)
from civicwatch.shared.infrastructure.logging import get_logger
from civicwatch.triage.application import ILLMClient

logger = get_logger(__name__)


class LLMClientAdapter(ILLMClient):
    """Adapter that wraps an infrastructure LLM client."""

    def __init__(self, client: InfrastructureLLMClient):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClientAdapter":
        if settings.mock_llm:
            logger.warning("Using mock LLM client")
            return cls(MockLLMClient())
        if not settings.llm_api_key:
            logger.warning("LLM API key not configured, classification will use fallback defaults")
            return cls(UnconfiguredLLMClient())
        return cls(OpenAILLMClient(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model
        ))

    @property
    def is_mock(self) -> bool:
        return isinstance(self._client, MockLLMClient)

    @property
    def is_configured(self) -> bool:
        return not isinstance(self._client, UnconfiguredLLMClient)

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> Any:
        """Generate chat completion."""
        return await self._client.chat_completion(messages, temperature, max_tokens, operation)
