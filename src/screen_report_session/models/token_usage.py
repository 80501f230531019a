# src/screen_report_session/models/token_usage.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .enums import TokenKind


class TokenBudgetEntry(BaseModel):
    """A single estimated-usage event, timestamped in seconds since the epoch."""

    model_config = ConfigDict(frozen=True)

    timestamp: float
    count: int = Field(ge=0)
    kind: TokenKind = TokenKind.IMAGE
