# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single immutable snapshot of every deployment-specific setting. Components
receive it through their constructors; nothing reads configuration from
module-level state.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROMPT_VARIANTS = ("minimal", "standard", "advanced")


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # === PROVIDERS ===
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""

    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_model: str = "gpt-4o"
    google_model: str = "gemini-1.5-flash"

    # Comma-separated provider names, tried in order
    fallback_order: str = "openai,anthropic,google"
    primary_provider: str = ""
    provider_timeout_s: float = 30.0
    provider_max_tokens: int = 1024
    provider_temperature: float = 0.3
    provider_retry_enabled: bool = False

    # === PROMPTS ===
    ai_role: str = "SEO expert"
    site_context: str = ""
    site_topic: str = ""
    alt_max_length: int = 125
    prompt_variant: str = "standard"
    prompt_template_minimal: str = ""
    prompt_template_standard: str = ""
    prompt_template_advanced: str = ""

    # === SCORING / APPROVAL ===
    auto_approve_threshold: float = 0.85
    auto_apply: bool = False
    score_weight_ai: float = 0.5
    score_weight_validation: float = 0.3
    score_weight_context: float = 0.2

    # JSON object of per-field rule overrides, e.g. {"alt": {"max_length": 100}}
    quality_rules: dict[str, dict[str, Any]] = {}

    # === MULTILINGUAL ===
    multilingual_enabled: bool = False
    default_language: str = "en"
    hub_language: str = "en"
    active_languages: str = "en"
    # JSON object, e.g. {"cs": ["sk", "en"]}; replaces the default chain per key
    fallback_chains: dict[str, list[str]] = {}

    # === RATE LIMITING / BATCH ===
    rate_limit_rpm: int = 50
    batch_max_retries: int = 3
    backoff_base_s: float = 5.0
    backoff_max_s: float = 300.0

    # === STORAGE ===
    database_path: Path = Path("~/.mediaseo/mediaseo.db")
    pricing_file: Path = Path("~/.mediaseo/pricing.json")
    audit_retention_days: int = 90

    # === PRICING SYNC ===
    pricing_api_url: str = "https://models.dev/api.json"
    pricing_csv_url: str = ""
    pricing_sync_timeout_s: float = 15.0
    pricing_sync_max_attempts: int = 3
    pricing_sync_backoff_s: float = 2.0
    pricing_sync_lock_ttl_s: int = 300

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("auto_approve_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("auto_approve_threshold must be within [0, 1]")
        return v

    @field_validator("provider_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("provider_timeout_s must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        weights = (
            self.score_weight_ai,
            self.score_weight_validation,
            self.score_weight_context,
        )
        if any(w < 0 or w > 1 for w in weights):
            errors.append("score weights must each be within [0, 1]")
        elif abs(sum(weights) - 1.0) > 1e-6:
            errors.append("score weights must sum to 1.0")

        for language, chain in self.fallback_chains.items():
            if language in chain:
                errors.append(
                    f"fallback chain for {language!r} must not reference itself"
                )

        if self.prompt_variant not in PROMPT_VARIANTS:
            errors.append(
                f"prompt_variant {self.prompt_variant!r} must be one of {PROMPT_VARIANTS}"
            )

        if self.primary_provider and self.primary_provider not in self.fallback_order_list:
            errors.append(
                f"primary_provider {self.primary_provider!r} is not in fallback_order"
            )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def fallback_order_list(self) -> list[str]:
        """Parse comma-separated provider fallback order."""
        return [p.strip() for p in self.fallback_order.split(",") if p.strip()]

    @property
    def active_languages_list(self) -> list[str]:
        """Parse comma-separated active language codes."""
        return [c.strip() for c in self.active_languages.split(",") if c.strip()]

    @property
    def score_weights(self) -> tuple[float, float, float]:
        """(ai, validation, context) blend weights."""
        return (
            self.score_weight_ai,
            self.score_weight_validation,
            self.score_weight_context,
        )

    def api_key_for(self, provider: str) -> str:
        """Credential configured for a provider ("" when unset)."""
        return getattr(self, f"{provider}_api_key", "") or ""

    def model_for(self, provider: str) -> str:
        """Model configured for a provider ("" when unknown)."""
        return getattr(self, f"{provider}_model", "") or ""

    def custom_template(self, variant: str) -> str:
        """Custom template configured for a prompt variant ("" when unset)."""
        return getattr(self, f"prompt_template_{variant}", "") or ""


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
