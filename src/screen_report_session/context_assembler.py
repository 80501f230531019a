# src/screen_report_session/context_assembler.py
"""
Context Assembler.

Turns a raw user message into the exact text sent to the completion service.
When the current context window holds a report, the message is wrapped with:

```
PREVIOUS REPORT:
<latest report, verbatim>

PAST CONVERSATION:
User: ...
AI: ...

USER REQUEST:            (or NEW IMAGE ANALYSIS REQUEST:)
<message>

INSTRUCTIONS: ...
```

Past conversation is bounded by a token budget; entries that would overflow it
are dropped whole, oldest first, never truncated.
"""

from __future__ import annotations

import logging
import math

from pydantic import BaseModel, Field

from .config import DEFAULT_CONTEXT_BUDGET
from .models import ContextWindow, ConversationTurn, RequestKind
from .prompts import (
    MODIFICATION_INSTRUCTIONS,
    NEW_IMAGE_INSTRUCTIONS,
    NEW_IMAGE_MARKERS,
    REPORT_SECTION_MARKERS,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

# Turn 0 of a window is the image upload that produced the first report
IMAGE_UPLOAD_TURN_INDEX = 0


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    if not text or not isinstance(text, str):
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def looks_like_report(text: str) -> bool:
    """True when ``text`` carries any standard report section header."""
    return any(marker in text for marker in REPORT_SECTION_MARKERS)


def is_new_image_request(message: str) -> bool:
    return any(marker in message for marker in NEW_IMAGE_MARKERS)


def find_latest_report(turns: list[ConversationTurn]) -> ConversationTurn | None:
    """Most recent turn whose response is a report."""
    for turn in reversed(turns):
        if looks_like_report(turn.ai_response):
            return turn
    return None


class AssembledContext(BaseModel):
    """Result of assembling the outbound message."""

    content: str = Field(..., description="Text to send to the completion service")
    tokens_est: int = Field(default=0, description="Estimated token count of content")
    request_kind: RequestKind = RequestKind.PLAIN
    latest_report: str | None = None
    turns_included: int = Field(default=0, description="Past chat turns embedded")
    turns_omitted: int = Field(default=0, description="Past chat turns dropped for budget")


class ContextAssembler(BaseModel):
    """Builds the bounded-size conversation context sent with each request."""

    token_budget: int = Field(default=DEFAULT_CONTEXT_BUDGET, ge=0)

    def build_context(self, user_message: str, context_window: ContextWindow) -> str:
        """Text to send for ``user_message`` given the current context window."""
        return self.assemble(user_message, context_window).content

    def assemble(self, user_message: str, context_window: ContextWindow) -> AssembledContext:
        """
        Assemble the outbound message and describe how it was built.

        Args:
            user_message: The raw request
            context_window: Turns since the last context reset

        Returns:
            AssembledContext; ``content`` equals ``user_message`` when the window is
            new, empty or holds no report.
        """
        turns = context_window.turns
        if context_window.is_new or not turns:
            return self._passthrough(user_message)

        latest = find_latest_report(turns)
        if latest is None:
            return self._passthrough(user_message)

        past_chat, included, omitted = self._collect_past_chat(turns)
        kind = RequestKind.NEW_IMAGE if is_new_image_request(user_message) else RequestKind.MODIFICATION

        content = f"PREVIOUS REPORT:\n{latest.ai_response}"
        if past_chat.strip():
            content += f"\n\nPAST CONVERSATION:\n{past_chat.strip()}"

        if kind == RequestKind.NEW_IMAGE:
            content += f"\n\nNEW IMAGE ANALYSIS REQUEST:\n{user_message}\n\n{NEW_IMAGE_INSTRUCTIONS}"
        else:
            content += f"\n\nUSER REQUEST:\n{user_message}\n\n{MODIFICATION_INSTRUCTIONS}"

        tokens_est = estimate_tokens(content)
        logger.debug(f"Context built with {tokens_est} estimated tokens ({kind.value})")

        return AssembledContext(
            content=content,
            tokens_est=tokens_est,
            request_kind=kind,
            latest_report=latest.ai_response,
            turns_included=included,
            turns_omitted=omitted,
        )

    def _collect_past_chat(self, turns: list[ConversationTurn]) -> tuple[str, int, int]:
        """
        Walk non-report turns newest to oldest, stopping at the token budget.

        Returns:
            (chronological chat text, turns included, turns omitted)
        """
        entries: list[str] = []
        tokens_used = 0

        for index in range(len(turns) - 1, IMAGE_UPLOAD_TURN_INDEX, -1):
            turn = turns[index]
            if looks_like_report(turn.ai_response):
                continue

            entry = f"User: {turn.user_input}\nAI: {turn.ai_response}\n\n"
            entry_tokens = estimate_tokens(entry)
            if tokens_used + entry_tokens > self.token_budget:
                break

            entries.insert(0, entry)
            tokens_used += entry_tokens

        # Everything older than the cut-off is omitted as well
        omitted = sum(
            1
            for turn in turns[IMAGE_UPLOAD_TURN_INDEX + 1 :]
            if not looks_like_report(turn.ai_response)
        ) - len(entries)
        return "".join(entries), len(entries), omitted

    def _passthrough(self, user_message: str) -> AssembledContext:
        return AssembledContext(
            content=user_message,
            tokens_est=estimate_tokens(user_message),
            request_kind=RequestKind.PLAIN,
        )
