# src/screen_report_session/token_tracker.py
"""
Rolling-window token accounting.

Every estimated-usage event (a screenshot sent, a slice of audio streamed) is
appended as a TokenBudgetEntry. Entries older than the window are pruned before
any budget read, so the sum always reflects the last minute only.

Image cost follows the provider's tiling rule: small images are a flat 258
tokens, larger ones are cut into 768x768 tiles of 258 tokens each. Audio costs
32 tokens per second of elapsed capture time.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from pydantic import BaseModel, Field, PrivateAttr

from .config import EngineSettings
from .models import TokenBudgetEntry, TokenKind

logger = logging.getLogger(__name__)

TOKENS_PER_IMAGE_TILE = 258
SMALL_IMAGE_MAX_SIDE = 384
IMAGE_TILE_SIDE = 768
AUDIO_TOKENS_PER_SECOND = 32
WINDOW_SECONDS = 60.0


class TokenTracker(BaseModel):
    """Tracks estimated token usage over a sliding 60 second window."""

    window_seconds: float = Field(default=WINDOW_SECONDS, gt=0)
    clock: Callable[[], float] = Field(default=time.time, exclude=True)

    _entries: list[TokenBudgetEntry] = PrivateAttr(default_factory=list)
    _audio_baseline: float | None = PrivateAttr(default=None)

    model_config = {"arbitrary_types_allowed": True}

    @property
    def entries(self) -> list[TokenBudgetEntry]:
        """Entries currently held (call ``prune`` first for a fresh view)."""
        return list(self._entries)

    def add_tokens(self, count: int, kind: TokenKind = TokenKind.IMAGE) -> None:
        """Record ``count`` tokens at the current time, then drop stale entries."""
        self._entries.append(TokenBudgetEntry(timestamp=self.clock(), count=count, kind=kind))
        self.prune()

    def prune(self) -> None:
        cutoff = self.clock() - self.window_seconds
        self._entries = [e for e in self._entries if e.timestamp > cutoff]

    @staticmethod
    def estimate_image_tokens(width: int, height: int) -> int:
        """Estimated cost of one image of the given pixel size."""
        if width <= SMALL_IMAGE_MAX_SIDE and height <= SMALL_IMAGE_MAX_SIDE:
            return TOKENS_PER_IMAGE_TILE

        tiles_x = math.ceil(width / IMAGE_TILE_SIDE)
        tiles_y = math.ceil(height / IMAGE_TILE_SIDE)
        return tiles_x * tiles_y * TOKENS_PER_IMAGE_TILE

    def track_audio_tokens(self) -> int:
        """
        Account for audio streamed since the previous call.

        The first call only sets the baseline. The baseline advances only when at
        least one whole token was recorded, so short intervals accumulate.

        Returns:
            Number of audio tokens recorded by this call.
        """
        now = self.clock()
        if self._audio_baseline is None:
            self._audio_baseline = now
            return 0

        elapsed = now - self._audio_baseline
        audio_tokens = math.floor(elapsed * AUDIO_TOKENS_PER_SECOND)
        if audio_tokens > 0:
            self.add_tokens(audio_tokens, TokenKind.AUDIO)
            self._audio_baseline = now
        return max(audio_tokens, 0)

    def tokens_in_last_minute(self) -> int:
        self.prune()
        return sum(e.count for e in self._entries)

    def tokens_by_kind(self) -> dict[TokenKind, int]:
        """Windowed totals split by media kind."""
        self.prune()
        totals = {kind: 0 for kind in TokenKind}
        for entry in self._entries:
            totals[entry.kind] += entry.count
        return totals

    def should_throttle(self, settings: EngineSettings | None = None) -> bool:
        """True when windowed usage has reached the configured share of the quota."""
        settings = settings or EngineSettings()
        if not settings.throttle_tokens:
            return False

        current = self.tokens_in_last_minute()
        threshold = settings.throttle_threshold
        logger.debug(f"Token check: {current}/{settings.max_tokens_per_min} (throttle at {threshold})")
        return current >= threshold

    def reset(self) -> None:
        """Forget all entries and the audio baseline."""
        self._entries = []
        self._audio_baseline = None
