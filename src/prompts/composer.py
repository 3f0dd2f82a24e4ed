# src/prompts/composer.py - v1
"""Compose the instruction text sent to a vision model.

Data precedence, lowest first: settings, language fields, context signals.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mediaseo.multilingual.languages import language_name
from mediaseo.prompts.renderer import render_template
from mediaseo.prompts.templates import TEMPLATE_REGISTRY, PromptTemplate, get_template
from mediaseo.tracking.token_estimator import estimate_text_tokens

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.core.models import ImageContext

logger = logging.getLogger(__name__)


class PromptComposer:
    """Render prompts from the variant registry.

    Args:
        settings: Role, site context, ALT limit, default variant, custom templates.
        registry: Variant name -> template (defaults to the built-in registry).
    """

    def __init__(
        self,
        settings: Settings,
        registry: dict[str, PromptTemplate] | None = None,
    ) -> None:
        self._settings = settings
        self._registry = dict(registry or TEMPLATE_REGISTRY)

    @property
    def variants(self) -> list[str]:
        return sorted(self._registry)

    def template_for(self, variant: str | None = None) -> str:
        variant = variant or self._settings.prompt_variant
        template = self._registry.get(variant) or get_template(variant)
        return template.resolve(self._settings.custom_template(variant))

    def build_data(self, language: str, context: ImageContext) -> dict[str, Any]:
        settings = self._settings
        data: dict[str, Any] = {
            "ai_role": settings.ai_role or "SEO expert",
            "site_context": settings.site_context,
            "alt_max_length": settings.alt_max_length,
        }
        data.update({
            "language": language,
            "language_name": language_name(language),
            "is_multilingual": settings.multilingual_enabled,
        })
        data.update(context.signals())
        return data

    def compose(
        self,
        variant: str | None,
        language: str,
        context: ImageContext,
    ) -> str:
        """Render the prompt for one image.

        Raises:
            KeyError: If the variant is not registered.
        """
        prompt = render_template(self.template_for(variant), self.build_data(language, context))
        logger.debug(
            "Composed %s prompt (%d chars, ~%d tokens)",
            variant or self._settings.prompt_variant, len(prompt), estimate_tokens(prompt),
        )
        return prompt


def estimate_tokens(prompt: str) -> int:
    """Rough prompt token count (4 chars per token)."""
    return estimate_text_tokens(prompt)
