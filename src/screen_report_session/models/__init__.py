# src/screen_report_session/models/__init__.py
"""
Data models for the report session engine.
"""

from .capture import CapturedImage, ImagePart, PromptPart, ScreenSourceDescriptor, TextPart
from .conversation import (
    ContextWindow,
    ConversationTurn,
    Session,
    SessionSnapshot,
    SessionStats,
    TurnRecord,
)
from .enums import (
    ConnectionPhase,
    ImageQuality,
    RequestKind,
    SessionStatus,
    SourceKind,
    TokenKind,
)
from .report_result import ReportResult
from .session_params import ReconnectionState, SessionParams
from .token_usage import TokenBudgetEntry

__all__ = [
    # Enums
    "ConnectionPhase",
    "ImageQuality",
    "RequestKind",
    "SessionStatus",
    "SourceKind",
    "TokenKind",
    # Conversation
    "ContextWindow",
    "ConversationTurn",
    "Session",
    "SessionSnapshot",
    "SessionStats",
    "TurnRecord",
    # Capture
    "CapturedImage",
    "ImagePart",
    "PromptPart",
    "ScreenSourceDescriptor",
    "TextPart",
    # Accounting and lifecycle
    "ReconnectionState",
    "ReportResult",
    "SessionParams",
    "TokenBudgetEntry",
]
