# src/llm/registry.py - v1
"""ProviderRegistry: configured adapters plus the fallback order.

Fallback across providers (and optional per-provider retry of transient
errors) happens only here; callers never retry a provider themselves.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediaseo.core.errors import InputError, ProviderError
from mediaseo.events import bus as events
from mediaseo.llm.adapter import ProviderAdapter
from mediaseo.llm.client_factory import available_providers, create_vision_client
from mediaseo.llm.models import ProviderInvocation
from mediaseo.llm.retry import (
    DEFAULT_RETRY_CONFIGS,
    RetryConfig,
    RetryExhausted,
    with_retry,
)
from mediaseo.logging.context import set_step_context

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.core.models import ImageContext
    from mediaseo.events.bus import EventBus
    from mediaseo.images.source import BaseImageSource
    from mediaseo.prompts.composer import PromptComposer
    from mediaseo.tracking.cost_calculator import PricingTable

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Ordered set of provider adapters.

    Args:
        adapters: Provider name -> adapter, or None when not configured.
        fallback_order: Provider names in attempt order.
        primary: Provider to try first when it is configured.
        retry_configs: Per error-type retry policy; None disables retry.
        event_bus: Receives one provider_request event per request sent.
    """

    def __init__(
        self,
        adapters: dict[str, ProviderAdapter | None],
        fallback_order: list[str],
        primary: str | None = None,
        retry_configs: dict[str, RetryConfig] | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._fallback_order = list(fallback_order)
        self._primary = primary or None
        self._retry_configs = retry_configs
        self._events = event_bus

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        composer: PromptComposer,
        images: BaseImageSource,
        pricing: PricingTable | None = None,
        retry_configs: dict[str, RetryConfig] | None = None,
        event_bus: EventBus | None = None,
    ) -> ProviderRegistry:
        """Create adapters for every provider in the fallback order that has a key."""
        adapters: dict[str, ProviderAdapter | None] = {}
        for name in settings.fallback_order_list:
            if name not in available_providers() or not settings.api_key_for(name):
                adapters[name] = None
                continue
            client = create_vision_client(name, settings)
            adapters[name] = ProviderAdapter(
                client,
                composer,
                images,
                pricing=pricing,
                timeout_s=settings.provider_timeout_s,
                max_tokens=settings.provider_max_tokens,
                temperature=settings.provider_temperature,
            )
        if retry_configs is None and settings.provider_retry_enabled:
            retry_configs = DEFAULT_RETRY_CONFIGS
        return cls(
            adapters,
            settings.fallback_order_list,
            primary=settings.primary_provider,
            retry_configs=retry_configs,
            event_bus=event_bus,
        )

    def attach_events(self, event_bus: EventBus) -> None:
        self._events = event_bus

    def is_configured(self, name: str) -> bool:
        return self._adapters.get(name) is not None

    def get(self, name: str) -> ProviderAdapter | None:
        return self._adapters.get(name)

    def configured_providers(self) -> list[str]:
        return [name for name in self.provider_order() if self.is_configured(name)]

    def provider_order(self) -> list[str]:
        """Attempt order: configured primary first, then the fallback list."""
        order: list[str] = []
        if self._primary and self.is_configured(self._primary):
            order.append(self._primary)
        for name in self._fallback_order:
            if name not in order:
                order.append(name)
        return order

    def get_primary(self) -> ProviderAdapter | None:
        """First configured provider in attempt order."""
        for name in self.provider_order():
            adapter = self._adapters.get(name)
            if adapter is not None:
                return adapter
        return None

    async def invoke_with_fallback(
        self,
        image_id: str,
        language: str,
        context: ImageContext,
        variant: str | None = None,
    ) -> ProviderInvocation:
        """Return the first provider success; record every failure by name.

        Raises:
            InputError: The image itself is unusable (no provider could help).
        """
        errors: dict[str, str] = {}

        for name in self.provider_order():
            adapter = self._adapters.get(name)
            if adapter is None:
                logger.debug("Provider %s not configured, skipping", name)
                continue

            set_step_context("invoke_provider", provider=name)
            try:
                result = await self._call(adapter, image_id, language, context, variant)
            except InputError:
                raise
            except Exception as e:
                reason = self._reason(e)
                errors[name] = reason
                logger.warning("Provider %s failed for image %s: %s", name, image_id, reason)
                continue

            return ProviderInvocation(
                success=True,
                result=result,
                provider=name,
                model=result.model,
                errors=errors,
            )

        if not errors:
            logger.error("No provider available for image %s", image_id)
        return ProviderInvocation(success=False, errors=errors)

    async def test_connections(self) -> dict[str, str]:
        """Provider name -> "ok", "not configured" or the failure reason."""
        status: dict[str, str] = {}
        for name in self.provider_order():
            adapter = self._adapters.get(name)
            if adapter is None:
                status[name] = "not configured"
                continue
            try:
                await adapter.test_connection()
                status[name] = "ok"
            except ProviderError as e:
                status[name] = str(e)
        return status

    async def _call(self, adapter, image_id, language, context, variant):
        if self._retry_configs is None:
            return await self._send(adapter, image_id, language, context, variant)
        try:
            return await with_retry(
                self._send,
                adapter,
                image_id,
                language,
                context,
                variant,
                label=adapter.name,
                retry_configs=self._retry_configs,
            )
        except RetryExhausted as e:
            if isinstance(e.last_error, InputError):
                raise e.last_error from None
            raise

    async def _send(self, adapter, image_id, language, context, variant):
        # Every attempt that reaches the provider counts, retries included.
        try:
            result = await adapter.analyze(image_id, language, context, variant)
        except InputError:
            raise
        except Exception:
            await self._publish_request(adapter.name, image_id, success=False)
            raise
        await self._publish_request(adapter.name, image_id, success=True)
        return result

    async def _publish_request(self, provider: str, image_id: str, success: bool) -> None:
        if self._events is not None:
            await self._events.publish(
                events.PROVIDER_REQUEST,
                {"provider": provider, "image_id": image_id, "success": success},
            )

    @staticmethod
    def _reason(error: Exception) -> str:
        if isinstance(error, RetryExhausted):
            return str(error.last_error)
        return str(error) or type(error).__name__
