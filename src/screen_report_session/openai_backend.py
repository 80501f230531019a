# src/screen_report_session/openai_backend.py
"""
Completion collaborator backed by the OpenAI Chat Completions API.

Requires the ``openai`` extra: ``pip install screen-report-session[openai]``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from .config import DEFAULT_MODEL
from .exceptions import TransportFailure
from .models import ImagePart, PromptPart, TextPart

logger = logging.getLogger(__name__)


def to_chat_content(parts: Sequence[PromptPart]) -> list[dict[str, Any]]:
    """Convert prompt parts to Chat Completions content items."""
    content: list[dict[str, Any]] = []
    for part in parts:
        if isinstance(part, ImagePart):
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{part.mime_type};base64,{part.data}"},
                }
            )
        elif isinstance(part, TextPart):
            content.append({"type": "text", "text": part.text})
    return content


class OpenAICompletionClient:
    """A model bound to one system instruction."""

    def __init__(self, client: AsyncOpenAI, model: str, system_instruction: str):
        self._client = client
        self.model = model
        self.system_instruction = system_instruction

    async def complete(self, parts: Sequence[PromptPart]) -> str:
        messages = [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": to_chat_content(parts)},
        ]
        try:
            response = await self._client.chat.completions.create(model=self.model, messages=messages)
        except OpenAIError as e:
            raise TransportFailure(f"OpenAI request failed: {e}") from e

        text = response.choices[0].message.content or ""
        if response.usage:
            logger.debug(
                f"OpenAI usage: prompt={response.usage.prompt_tokens} completion={response.usage.completion_tokens}"
            )
        return text


class OpenAICompletionBackend:
    """Creates OpenAI-backed completion clients."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        client_factory: Callable[[str], AsyncOpenAI] | None = None,
    ):
        self.model = model
        self._client_factory = client_factory or (lambda api_key: AsyncOpenAI(api_key=api_key))

    async def connect(
        self,
        api_key: str,
        system_instruction: str,
        tools: list[dict[str, Any]],
    ) -> OpenAICompletionClient:
        if tools:
            # Search grounding is a provider-side tool the Chat Completions API has no equivalent for
            logger.debug(f"Ignoring {len(tools)} provider tool declaration(s) for model {self.model}")
        try:
            client = self._client_factory(api_key)
        except OpenAIError as e:
            raise TransportFailure(f"Could not create OpenAI client: {e}") from e
        return OpenAICompletionClient(client, self.model, system_instruction)
