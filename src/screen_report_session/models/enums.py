# src/screen_report_session/models/enums.py
"""Enums shared across the engine."""

from enum import Enum


class TokenKind(str, Enum):
    """What kind of media a token budget entry accounts for."""

    IMAGE = "image"
    AUDIO = "audio"


class SourceKind(str, Enum):
    """Kind of capture source, derived from the collaborator's id prefix."""

    SCREEN = "screen"
    WINDOW = "window"
    CAMERA = "camera"
    UNKNOWN = "unknown"

    @classmethod
    def from_source_id(cls, source_id: str) -> "SourceKind":
        prefix = source_id.split(":", 1)[0].strip().lower() if ":" in source_id else ""
        try:
            return cls(prefix)
        except ValueError:
            return cls.UNKNOWN


class SessionStatus(str, Enum):
    """Status strings published to the status sink."""

    INITIALIZING = "Session initializing"
    CONNECTED = "Session connected"
    CLOSED = "Session closed"


class ConnectionPhase(str, Enum):
    """Lifecycle phase of the completion session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ABANDONED = "abandoned"


class RequestKind(str, Enum):
    """How an outbound message was classified by the context assembler."""

    PLAIN = "plain"  # sent unchanged, no prior report in window
    NEW_IMAGE = "new_image"
    MODIFICATION = "modification"


class ImageQuality(str, Enum):
    """JPEG quality presets for captures."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def jpeg_quality(self) -> float:
        return {"high": 0.9, "medium": 0.7, "low": 0.5}[self.value]
