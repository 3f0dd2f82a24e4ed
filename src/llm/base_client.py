# src/llm/base_client.py - v2
"""Abstract vision client interface implemented by every SDK adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod

from mediaseo.llm.models import ImageInput, LLMResponse, ModelCapabilities


class BaseVisionClient(ABC):
    """Unified interface for vision-capable providers."""

    @abstractmethod
    async def complete_with_vision(
        self,
        prompt: str,
        image: ImageInput,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """Send one image plus instruction text and return the raw reply."""

    @abstractmethod
    def validate_config(self) -> bool:
        """Whether the credential and model look usable, without a network call."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Cheap authenticated round-trip to the provider."""

    @property
    @abstractmethod
    def capabilities(self) -> ModelCapabilities:
        """Capabilities of the configured model."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai, google)."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Configured model id."""
