# src/screen_report_session/exceptions.py
"""Exception hierarchy for the report session engine."""

from __future__ import annotations


class ReportEngineError(Exception):
    """Base class for every error raised by the engine."""


class InvalidCredential(ReportEngineError):
    """The API key is missing, empty or not a string. Never retried."""

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)


class InitializationInProgress(ReportEngineError):
    """A session initialization is already running; the caller should wait."""

    def __init__(self, message: str = "Session initialization already in progress"):
        super().__init__(message)


class NoValidSourceError(ReportEngineError):
    """No enumerated capture source qualifies as a full screen."""

    def __init__(self, candidates: int = 0):
        self.candidates = candidates
        super().__init__(
            f"No valid screen display sources found among {candidates} candidates. "
            "Only camera or window sources available."
        )


class CaptureTimeout(ReportEngineError):
    """The capture collaborator did not answer within the timeout."""

    def __init__(self, source_id: str, timeout: float):
        self.source_id = source_id
        self.timeout = timeout
        super().__init__(f"Capture of {source_id} timed out after {timeout:g}s")


class TransportFailure(ReportEngineError):
    """A completion or capture call was rejected by its collaborator."""


class SessionNotActive(ReportEngineError):
    """A request was made without a connected completion session."""

    def __init__(self, message: str = "No active session"):
        super().__init__(message)


class InvalidRequest(ReportEngineError):
    """The request payload (text or image) failed validation."""
