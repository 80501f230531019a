# src/screen_report_session/models/conversation.py
"""Conversation state: turns, sessions, context windows and their read-only views."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class ConversationTurn(BaseModel):
    """One user input paired with one AI response. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    user_input: str
    ai_response: str


class Session(BaseModel):
    """One continuous use of the assistant and its full history."""

    session_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    history: list[ConversationTurn] = Field(default_factory=list)


class ContextWindow(BaseModel):
    """
    The turns recorded since the last explicit reset.

    ``is_new`` stays true until the first turn lands after a reset; the context
    assembler sends messages unchanged while it is set.
    """

    turns: list[ConversationTurn] = Field(default_factory=list)
    is_new: bool = True

    def reset(self) -> None:
        self.turns = []
        self.is_new = True

    def append(self, turn: ConversationTurn) -> None:
        self.turns.append(turn)
        self.is_new = False


class SessionSnapshot(BaseModel):
    """Read-only copy of the live session state."""

    model_config = ConfigDict(frozen=True)

    session_id: str | None = None
    history: tuple[ConversationTurn, ...] = ()
    context_window_turns: tuple[ConversationTurn, ...] = ()


class TurnRecord(BaseModel):
    """Notification handed to the persistence collaborator after each turn."""

    session_id: str
    turn: ConversationTurn
    full_history: list[ConversationTurn]


class SessionStats(BaseModel):
    """Counters describing the live session."""

    session_id: str | None = None
    total_turns: int = 0
    context_window_turns: int = 0
    report_turns: int = 0
    context_window_is_new: bool = True
