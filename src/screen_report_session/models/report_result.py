# src/screen_report_session/models/report_result.py
from __future__ import annotations

from pydantic import BaseModel

from .enums import RequestKind


class ReportResult(BaseModel):
    """Outcome of a report generation or text request."""

    success: bool
    text: str | None = None
    error: str | None = None
    throttled: bool = False
    response_time_ms: int | None = None
    request_kind: RequestKind | None = None
