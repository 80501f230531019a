# src/screen_report_session/__init__.py
"""
screen_report_session - session and context orchestration for a screen-capture
report assistant.

Quick start:
    ```python
    from screen_report_session import ReportSessionEngine

    engine = ReportSessionEngine(capture=my_capture_backend, completion=my_completion_backend)
    await engine.initialize_session(api_key)
    await engine.start_capture()
    result = await engine.generate_report()
    print(result.text)
    ```

The OpenAI completion adapter lives in ``screen_report_session.openai_backend``
and needs the ``openai`` extra.
"""

import logging

from screen_report_session.collaborators import (
    CaptureBackend,
    CompletionBackend,
    CompletionClient,
    DictSettings,
    LoggingStatusSink,
    NullPersistence,
    PersistenceSink,
    RecordingStatusSink,
    SettingsProvider,
    StatusSink,
)
from screen_report_session.config import EngineSettings
from screen_report_session.context_assembler import (
    AssembledContext,
    ContextAssembler,
    estimate_tokens,
    looks_like_report,
)
from screen_report_session.exceptions import (
    CaptureTimeout,
    InitializationInProgress,
    InvalidCredential,
    InvalidRequest,
    NoValidSourceError,
    ReportEngineError,
    SessionNotActive,
    TransportFailure,
)
from screen_report_session.models import (
    CapturedImage,
    ConnectionPhase,
    ContextWindow,
    ConversationTurn,
    ImagePart,
    ReconnectionState,
    ReportResult,
    RequestKind,
    ScreenSourceDescriptor,
    Session,
    SessionParams,
    SessionSnapshot,
    SessionStatus,
    SourceKind,
    TextPart,
    TokenBudgetEntry,
    TokenKind,
    TurnRecord,
)
from screen_report_session.orchestrator import ReportSessionEngine
from screen_report_session.reconnection import ReconnectionController
from screen_report_session.screen_sources import ScreenSourceCache, ScreenSourceSelector
from screen_report_session.session_manager import SessionManager
from screen_report_session.storage import InMemoryConversationStore, JsonFileConversationStore, StoredSession
from screen_report_session.token_tracker import TokenTracker

__version__ = "0.1.0"

# Library logging: silent unless the application configures handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Orchestration
    "ReportSessionEngine",
    "SessionManager",
    "ContextAssembler",
    "AssembledContext",
    "TokenTracker",
    "ScreenSourceSelector",
    "ScreenSourceCache",
    "ReconnectionController",
    # Collaborators
    "CaptureBackend",
    "CompletionBackend",
    "CompletionClient",
    "PersistenceSink",
    "SettingsProvider",
    "StatusSink",
    "DictSettings",
    "LoggingStatusSink",
    "RecordingStatusSink",
    "NullPersistence",
    "InMemoryConversationStore",
    "JsonFileConversationStore",
    "StoredSession",
    # Models
    "CapturedImage",
    "ConnectionPhase",
    "ContextWindow",
    "ConversationTurn",
    "ImagePart",
    "ReconnectionState",
    "ReportResult",
    "RequestKind",
    "ScreenSourceDescriptor",
    "Session",
    "SessionParams",
    "SessionSnapshot",
    "SessionStatus",
    "SourceKind",
    "TextPart",
    "TokenBudgetEntry",
    "TokenKind",
    "TurnRecord",
    # Config
    "EngineSettings",
    # Errors
    "ReportEngineError",
    "InvalidCredential",
    "InitializationInProgress",
    "NoValidSourceError",
    "CaptureTimeout",
    "TransportFailure",
    "SessionNotActive",
    "InvalidRequest",
    # Helpers
    "estimate_tokens",
    "looks_like_report",
]
