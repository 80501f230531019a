# src/screen_report_session/screen_sources.py
"""
Capture source filtering, ranking and query de-duplication.

The capture collaborator enumerates everything it can image: whole screens,
individual windows and sometimes cameras. Reports are only ever generated from a
full screen, so the selector applies a strict filter and then prefers the
primary display.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

from .collaborators import CaptureBackend
from .config import DEFAULT_SOURCE_CACHE_TTL
from .exceptions import NoValidSourceError, ReportEngineError, TransportFailure
from .models import ScreenSourceDescriptor, SourceKind

logger = logging.getLogger(__name__)

SCREEN_ID_PREFIX = "screen:"
WINDOW_ID_PREFIX = "window:"
SCREEN_NAME_HINTS = ("screen", "display", "entire")
CAMERA_NAME_HINTS = ("camera", "webcam", "facetime", "cam")
CAMERA_ID_HINTS = ("camera", "webcam")
PRIMARY_NAME_HINTS = ("screen 1", "main", "primary", "display 1")


def is_full_screen_source(source: ScreenSourceDescriptor) -> bool:
    """True for a whole-screen source; windows and cameras never pass."""
    source_id = source.id.lower()
    name = source.name.lower()

    is_screen_id = source_id.startswith(SCREEN_ID_PREFIX) and source.kind == SourceKind.SCREEN
    has_screen_name = any(hint in name for hint in SCREEN_NAME_HINTS)
    is_not_camera = not any(hint in name for hint in CAMERA_NAME_HINTS) and not any(
        hint in source_id for hint in CAMERA_ID_HINTS
    )
    is_not_window = not source_id.startswith(WINDOW_ID_PREFIX) and source.kind != SourceKind.WINDOW

    return is_screen_id and has_screen_name and is_not_camera and is_not_window


class ScreenSourceSelector:
    """Deterministically picks one full-screen source."""

    def filter(self, sources: Sequence[ScreenSourceDescriptor]) -> list[ScreenSourceDescriptor]:
        return [s for s in sources if is_full_screen_source(s)]

    def select(self, sources: Sequence[ScreenSourceDescriptor]) -> ScreenSourceDescriptor:
        """
        Choose the source to capture.

        Raises:
            NoValidSourceError: when nothing in ``sources`` is a full screen.
        """
        screens = self.filter(sources)
        if not screens:
            raise NoValidSourceError(candidates=len(sources))

        logger.debug(f"Found {len(screens)} valid screen sources out of {len(sources)}")

        for source in screens:
            name = source.name.lower()
            if any(hint in name for hint in PRIMARY_NAME_HINTS):
                logger.debug(f"Selected primary screen source: {source.name}")
                return source

        logger.debug(f"No primary screen found, using first screen source: {screens[0].name}")
        return screens[0]


class ScreenSourceCache:
    """
    Single-flight, short-lived cache over ``CaptureBackend.list_sources``.

    Concurrent callers share one in-flight query; results are reused for
    ``ttl`` seconds. Failed queries are never cached.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        ttl: float = DEFAULT_SOURCE_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._backend = backend
        self._ttl = ttl
        self._clock = clock
        self._lock = asyncio.Lock()
        self._sources: list[ScreenSourceDescriptor] | None = None
        self._fetched_at = 0.0

    def _fresh_sources(self) -> list[ScreenSourceDescriptor] | None:
        """Cached sources younger than the TTL, else None."""
        if self._sources is None or (self._clock() - self._fetched_at) >= self._ttl:
            return None
        return list(self._sources)

    def invalidate(self) -> None:
        self._sources = None

    async def get_sources(self, force: bool = False) -> list[ScreenSourceDescriptor]:
        """Return the enumerated sources, querying the backend at most once per TTL."""
        cached = None if force else self._fresh_sources()
        if cached is not None:
            return cached

        async with self._lock:
            # Another caller may have refreshed the cache while we waited
            cached = None if force else self._fresh_sources()
            if cached is not None:
                return cached

            try:
                sources = await self._backend.list_sources()
            except ReportEngineError:
                raise
            except Exception as e:
                raise TransportFailure(f"Failed to get screen sources: {e}") from e

            self._sources = list(sources)
            self._fetched_at = self._clock()
            logger.debug(f"Fetched {len(self._sources)} capture sources")
            return list(self._sources)
