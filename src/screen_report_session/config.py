# src/screen_report_session/config.py
"""
Central configuration for the report session engine.

Defaults can be overridden through environment variables (a ``.env`` file in the
working directory is loaded on import). Runtime settings that the UI layer owns
(throttling switches, search tool toggle) are read through a ``SettingsProvider``
and resolved into ``EngineSettings``.
"""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_MAX_TOKENS_PER_MIN = int(os.getenv("SCREEN_REPORT_MAX_TOKENS_PER_MIN", "1000000"))
DEFAULT_THROTTLE_AT_PERCENT = int(os.getenv("SCREEN_REPORT_THROTTLE_AT_PERCENT", "75"))
DEFAULT_RECONNECT_ATTEMPTS = int(os.getenv("SCREEN_REPORT_RECONNECT_ATTEMPTS", "3"))
DEFAULT_RECONNECT_DELAY_MS = int(os.getenv("SCREEN_REPORT_RECONNECT_DELAY_MS", "2000"))
DEFAULT_CAPTURE_TIMEOUT = float(os.getenv("SCREEN_REPORT_CAPTURE_TIMEOUT", "10"))
DEFAULT_SOURCE_CACHE_TTL = float(os.getenv("SCREEN_REPORT_SOURCE_CACHE_TTL", "10"))
DEFAULT_CONTEXT_BUDGET = int(os.getenv("SCREEN_REPORT_CONTEXT_BUDGET", "3000"))
DEFAULT_MODEL = os.getenv("SCREEN_REPORT_MODEL", "gpt-4o-mini")

# Keys understood by the settings collaborator
SETTING_THROTTLE_TOKENS = "throttleTokens"
SETTING_MAX_TOKENS_PER_MIN = "maxTokensPerMin"
SETTING_THROTTLE_AT_PERCENT = "throttleAtPercent"
SETTING_GOOGLE_SEARCH_ENABLED = "googleSearchEnabled"

_TRUE_STRINGS = {"true", "1", "yes", "on"}


class EngineSettings(BaseModel):
    """Snapshot of the user-controlled settings that influence the engine."""

    throttle_tokens: bool = Field(default=False, description="Enable token throttling")
    max_tokens_per_min: int = Field(default=DEFAULT_MAX_TOKENS_PER_MIN, ge=0)
    throttle_at_percent: int = Field(default=DEFAULT_THROTTLE_AT_PERCENT, ge=0)
    google_search_enabled: bool = Field(default=True, description="Offer the search tool to the model")

    @field_validator("throttle_tokens", "google_search_enabled", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return value

    @field_validator("max_tokens_per_min", "throttle_at_percent", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value.strip())
        return value

    @property
    def throttle_threshold(self) -> int:
        """Token count at which throttling kicks in."""
        return (self.max_tokens_per_min * self.throttle_at_percent) // 100

    @classmethod
    def from_provider(cls, provider: Any | None) -> EngineSettings:
        """Resolve settings from a ``SettingsProvider``; missing keys keep their defaults."""
        if provider is None:
            return cls()

        defaults = cls()
        return cls(
            throttle_tokens=provider.get(SETTING_THROTTLE_TOKENS, defaults.throttle_tokens),
            max_tokens_per_min=provider.get(SETTING_MAX_TOKENS_PER_MIN, defaults.max_tokens_per_min),
            throttle_at_percent=provider.get(SETTING_THROTTLE_AT_PERCENT, defaults.throttle_at_percent),
            google_search_enabled=provider.get(SETTING_GOOGLE_SEARCH_ENABLED, defaults.google_search_enabled),
        )
