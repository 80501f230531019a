# src/screen_report_session/models/capture.py
"""Capture sources, captured images and the prompt parts sent for completion."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import SourceKind


class ScreenSourceDescriptor(BaseModel):
    """A source enumerated by the capture collaborator. Never mutated by the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: SourceKind = SourceKind.UNKNOWN

    @model_validator(mode="before")
    @classmethod
    def _derive_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and "id" in data and data.get("kind") in (None, "", SourceKind.UNKNOWN):
            data = {**data, "kind": SourceKind.from_source_id(str(data["id"]))}
        return data


class CapturedImage(BaseModel):
    """A screenshot as returned by the capture collaborator."""

    data: str = Field(..., description="Base64-encoded image bytes")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    mime_type: str = "image/jpeg"
    quality: float | None = None

    def decoded_size(self) -> int:
        """Decoded byte count, ignoring line breaks; 0 if the payload is not valid base64."""
        try:
            return len(base64.b64decode("".join(self.data.split()), validate=True))
        except (binascii.Error, ValueError):
            return 0


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    type: Literal["image"] = "image"
    data: str
    mime_type: str = "image/jpeg"

    @classmethod
    def from_capture(cls, image: CapturedImage) -> ImagePart:
        return cls(data="".join(image.data.split()), mime_type=image.mime_type)


PromptPart = TextPart | ImagePart
