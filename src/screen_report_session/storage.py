# src/screen_report_session/storage.py
"""
Conversation stores.

Both stores implement the persistence collaborator: every recorded turn replaces
the stored copy of its session with the full history carried in the record.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from .models import ConversationTurn, TurnRecord

logger = logging.getLogger(__name__)


class StoredSession(BaseModel):
    """One persisted conversation session."""

    session_id: str
    timestamp: int = Field(default=0, description="Session start, ms since the epoch")
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_record(cls, record: TurnRecord) -> StoredSession:
        try:
            started = int(record.session_id)
        except ValueError:
            started = 0
        return cls(
            session_id=record.session_id,
            timestamp=started,
            conversation_history=list(record.full_history),
        )


class InMemoryConversationStore:
    """Keeps sessions in a dict for the lifetime of the process."""

    def __init__(self) -> None:
        self._sessions: dict[str, StoredSession] = {}

    def on_turn_recorded(self, record: TurnRecord) -> None:
        self._sessions[record.session_id] = StoredSession.from_record(record)

    def get_session(self, session_id: str) -> StoredSession | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[StoredSession]:
        """All sessions, newest first."""
        return sorted(self._sessions.values(), key=lambda s: s.timestamp, reverse=True)

    def __len__(self) -> int:
        return len(self._sessions)


class JsonFileConversationStore:
    """One JSON file per session under ``directory``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def on_turn_recorded(self, record: TurnRecord) -> None:
        stored = StoredSession.from_record(record)
        path = self._path(record.session_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(stored.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)
        logger.debug(f"Saved session {record.session_id} ({len(stored.conversation_history)} turns) to {path}")

    def get_session(self, session_id: str) -> StoredSession | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        return StoredSession.model_validate_json(path.read_text(encoding="utf-8"))

    def list_sessions(self) -> list[StoredSession]:
        """All readable sessions, newest first. Corrupt files are skipped with a warning."""
        sessions: list[StoredSession] = []
        for path in self.directory.glob("*.json"):
            try:
                sessions.append(StoredSession.model_validate_json(path.read_text(encoding="utf-8")))
            except ValueError as e:
                logger.warning(f"Skipping unreadable session file {path.name}: {e}")
        return sorted(sessions, key=lambda s: s.timestamp, reverse=True)
