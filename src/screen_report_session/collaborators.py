# src/screen_report_session/collaborators.py
"""
Boundaries between the engine and the outside world.

The engine never talks to a window system, a screen grabber or an LLM SDK
directly. It is handed objects implementing these protocols; the simple
implementations below cover settings held in memory and status reporting
through logging.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from .models import CapturedImage, PromptPart, ScreenSourceDescriptor, TurnRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class CaptureBackend(Protocol):
    """Enumerates capture sources and grabs one image from a source."""

    async def list_sources(self) -> list[ScreenSourceDescriptor]: ...

    async def capture_at(self, source_id: str) -> CapturedImage: ...


@runtime_checkable
class CompletionClient(Protocol):
    """A configured model ready to answer requests."""

    async def complete(self, parts: Sequence[PromptPart]) -> str: ...


@runtime_checkable
class CompletionBackend(Protocol):
    """Builds a CompletionClient from a key, a system instruction and tools."""

    async def connect(
        self,
        api_key: str,
        system_instruction: str,
        tools: list[dict[str, Any]],
    ) -> CompletionClient: ...


@runtime_checkable
class PersistenceSink(Protocol):
    """Receives every recorded turn. Fire-and-forget."""

    def on_turn_recorded(self, record: TurnRecord) -> None: ...


@runtime_checkable
class SettingsProvider(Protocol):
    """Read-only key/value source owned by the UI layer."""

    def get(self, key: str, default: Any = None) -> Any: ...


@runtime_checkable
class StatusSink(Protocol):
    """Receives human-readable status strings."""

    def publish(self, status: str) -> None: ...


class DictSettings:
    """Settings backed by a plain dict (values may be strings, as in web storage)."""

    def __init__(self, values: dict[str, Any] | None = None):
        self._values = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        value = self._values.get(key)
        # Empty strings count as unset, like an absent storage key
        if value is None or value == "":
            return default
        return value

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class LoggingStatusSink:
    """Publishes status updates to the log."""

    def publish(self, status: str) -> None:
        logger.info(f"Status update: {status}")


class RecordingStatusSink:
    """Keeps every published status; handy for headless runs and tests."""

    def __init__(self) -> None:
        self.statuses: list[str] = []

    def publish(self, status: str) -> None:
        self.statuses.append(status)

    @property
    def last(self) -> str | None:
        return self.statuses[-1] if self.statuses else None


class NullPersistence:
    """Drops turn notifications."""

    def on_turn_recorded(self, record: TurnRecord) -> None:
        return None
