# src/llm/client_factory.py - v3
"""Factory: instantiate a vision client from a provider name."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from mediaseo.llm.base_client import BaseVisionClient

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "mediaseo.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "mediaseo.llm.adapters.openai_adapter.OpenAIAdapter",
    "google": "mediaseo.llm.adapters.google_adapter.GoogleAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def available_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)


def create_vision_client(
    provider: str,
    settings: Settings | None = None,
    model: str | None = None,
    **kwargs: object,
) -> BaseVisionClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (anthropic, openai, google).
        settings: Application settings (API key and default model).
        model: Model override; defaults to the provider model in settings.
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported provider: {provider!r}. "
            f"Available: {', '.join(available_providers())}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    if settings is not None:
        init_kwargs.setdefault("api_key", settings.api_key_for(provider))
        model = model or settings.model_for(provider) or None
    if model:
        init_kwargs["model"] = model

    logger.debug("Creating vision client: provider=%s, model=%s", provider, model or "default")
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseVisionClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
