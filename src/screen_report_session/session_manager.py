# src/screen_report_session/session_manager.py
"""
SessionManager - owns the conversation session and its context window.

This module provides:
- Session identity (monotonic, time based)
- Full conversation history for the session
- The context window: the turns since the last explicit reset
- Turn notifications to a persistence collaborator
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .collaborators import NullPersistence, PersistenceSink
from .context_assembler import looks_like_report
from .models import (
    ContextWindow,
    ConversationTurn,
    Session,
    SessionSnapshot,
    SessionStats,
    TurnRecord,
)

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Session and context-window lifecycle for one assistant instance.

    Examples:
        ```python
        sm = SessionManager()
        sm.start_new_session()
        sm.record_turn("Image uploaded", "FINDINGS: ...")
        sm.reset_context_window()  # history kept, next prompt starts fresh
        ```
    """

    def __init__(
        self,
        persistence: PersistenceSink | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize a SessionManager.

        Args:
            persistence: Receives a TurnRecord after every recorded turn.
            clock: Seconds since the epoch; used to derive session identifiers.
        """
        self._persistence = persistence if persistence is not None else NullPersistence()
        self._clock = clock
        self._session: Session | None = None
        self._context_window = ContextWindow()
        self._last_session_ms = 0

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session else None

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def history(self) -> list[ConversationTurn]:
        return list(self._session.history) if self._session else []

    @property
    def context_window(self) -> ContextWindow:
        """The live context window (read by the context assembler)."""
        return self._context_window

    def _next_session_id(self) -> str:
        now_ms = int(self._clock() * 1000)
        # Two sessions started in the same millisecond still get distinct ids
        if now_ms <= self._last_session_ms:
            now_ms = self._last_session_ms + 1
        self._last_session_ms = now_ms
        return str(now_ms)

    def _new_session(self) -> Session:
        session = Session(session_id=self._next_session_id())
        self._session = session
        self._context_window = ContextWindow()
        logger.info(f"New conversation session started: {session.session_id}")
        return session

    def start_new_session(self) -> str:
        """
        Replace the live session with a fresh one and a new context window.

        Returns:
            The new session ID.
        """
        return self._new_session().session_id

    def record_turn(self, user_input: str, ai_response: str) -> ConversationTurn:
        """
        Append a turn to the session history and the context window.

        Starts a session first if none exists. The persistence collaborator is
        notified with the full updated history; its failures are logged only.
        """
        session = self._session if self._session is not None else self._new_session()

        turn = ConversationTurn(user_input=user_input.strip(), ai_response=ai_response.strip())
        session.history.append(turn)
        self._context_window.append(turn)
        logger.debug(f"Saved conversation turn {len(session.history)} in session {session.session_id}")

        record = TurnRecord(
            session_id=session.session_id,
            turn=turn,
            full_history=list(session.history),
        )
        try:
            self._persistence.on_turn_recorded(record)
        except Exception as e:
            logger.warning(f"Failed to persist turn for session {session.session_id}: {e}")

        return turn

    def reset_context_window(self) -> None:
        """Start a new context window; the session history is untouched."""
        self._context_window.reset()
        logger.info("New context window started")

    def get_session_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            history=tuple(self.history),
            context_window_turns=tuple(self._context_window.turns),
        )

    def get_stats(self) -> SessionStats:
        history = self.history
        return SessionStats(
            session_id=self.session_id,
            total_turns=len(history),
            context_window_turns=len(self._context_window.turns),
            report_turns=sum(1 for t in history if looks_like_report(t.ai_response)),
            context_window_is_new=self._context_window.is_new,
        )
