# src/screen_report_session/reconnection.py
"""
Bounded reconnection for a session that dropped after it was healthy.

Retries are linear: a fixed delay before each attempt and a hard cap on the
number of attempts per failure episode. Re-initialization is flagged as a
reconnection so the conversation history survives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .collaborators import StatusSink
from .exceptions import ReportEngineError
from .models import ConnectionPhase, ReconnectionState, SessionParams, SessionStatus

logger = logging.getLogger(__name__)

# Re-initializes the completion session from cached parameters
Reinitializer = Callable[[SessionParams], Awaitable[object]]
Sleeper = Callable[[float], Awaitable[None]]


class ReconnectionController:
    """Supervises transient session loss and retries initialization."""

    def __init__(
        self,
        reinitialize: Reinitializer,
        status_sink: StatusSink,
        state: ReconnectionState | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._reinitialize = reinitialize
        self._status = status_sink
        self._sleep = sleep
        self.state = state if state is not None else ReconnectionState()
        self.phase = ConnectionPhase.IDLE

    def mark_connected(self) -> None:
        """Record a successful initialization."""
        self.state.reset()
        self.phase = ConnectionPhase.CONNECTED

    def mark_idle(self) -> None:
        self.phase = ConnectionPhase.IDLE

    async def reconnect(self, params: SessionParams | None) -> bool:
        """
        Try to re-establish the session.

        Args:
            params: Parameters cached at the last explicit initialization, or None
                after an explicit close (reconnection is then a no-op).

        Returns:
            True once a re-initialization succeeds, False when abandoned.
        """
        if params is None:
            logger.info("No session parameters stored, not reconnecting")
            self._abandon()
            return False

        self.phase = ConnectionPhase.RECONNECTING
        while not self.state.exhausted:
            self.state.attempts += 1
            logger.info(f"Attempting reconnection {self.state.attempts}/{self.state.max_attempts}...")

            await self._sleep(self.state.delay_seconds)

            try:
                await self._reinitialize(params)
            except ReportEngineError as e:
                logger.warning(f"Reconnection attempt {self.state.attempts} failed: {e}")
                continue

            self.mark_connected()
            self._status.publish(SessionStatus.CONNECTED.value)
            logger.info("Session reconnected")
            return True

        logger.error("All reconnection attempts failed")
        self._abandon()
        return False

    def _abandon(self) -> None:
        self.phase = ConnectionPhase.ABANDONED
        self._status.publish(SessionStatus.CLOSED.value)
