# src/screen_report_session/models/session_params.py
"""Parameters kept around so a dropped session can be re-established."""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr

from ..config import DEFAULT_RECONNECT_ATTEMPTS, DEFAULT_RECONNECT_DELAY_MS


class SessionParams(BaseModel):
    """Last explicit initialization parameters. Cleared on explicit close."""

    api_key: SecretStr
    custom_prompt: str = ""
    profile: str = "radiology"
    language: str = "en-US"


class ReconnectionState(BaseModel):
    """Bounded linear retry counter."""

    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=DEFAULT_RECONNECT_ATTEMPTS, ge=0)
    delay_ms: int = Field(default=DEFAULT_RECONNECT_DELAY_MS, ge=0)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000

    def reset(self) -> None:
        self.attempts = 0
