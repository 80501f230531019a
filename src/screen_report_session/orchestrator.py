# src/screen_report_session/orchestrator.py
"""
ReportSessionEngine - the single owner of session, context and budget state.

Control flow for a report:

1. pick a full-screen capture source (cached, single-flight enumeration)
2. capture it (bounded by a timeout)
3. build the prompt from the context window
4. ask the completion client
5. record estimated image tokens for the next throttle decision
6. record the turn

A transport failure on a session that was healthy hands over to the
ReconnectionController; the failed request itself is reported, not retried.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Sequence

from .collaborators import (
    CaptureBackend,
    CompletionBackend,
    CompletionClient,
    LoggingStatusSink,
    PersistenceSink,
    SettingsProvider,
    StatusSink,
)
from .config import DEFAULT_CAPTURE_TIMEOUT, DEFAULT_SOURCE_CACHE_TTL, EngineSettings
from .context_assembler import ContextAssembler
from .exceptions import (
    CaptureTimeout,
    InitializationInProgress,
    InvalidCredential,
    InvalidRequest,
    ReportEngineError,
    SessionNotActive,
    TransportFailure,
)
from .models import (
    CapturedImage,
    ConnectionPhase,
    ImagePart,
    ImageQuality,
    PromptPart,
    ReconnectionState,
    ReportResult,
    RequestKind,
    ScreenSourceDescriptor,
    SessionParams,
    SessionSnapshot,
    SessionStatus,
    TextPart,
    TokenKind,
)
from .prompts import (
    ADDITIONAL_CONTEXT_TEMPLATE,
    DEFAULT_PROFILE,
    FOLLOW_UP_IMAGE_PROMPT,
    IMAGE_DESCRIPTION_END,
    IMAGE_DESCRIPTION_START,
    INITIAL_IMAGE_PROMPT,
    get_enabled_tools,
    get_system_prompt,
)
from .reconnection import ReconnectionController, Sleeper
from .screen_sources import ScreenSourceCache, ScreenSourceSelector
from .session_manager import SessionManager
from .token_tracker import TokenTracker

logger = logging.getLogger(__name__)

MIN_IMAGE_BYTES = 1000

_IMAGE_DESCRIPTION_RE = re.compile(
    re.escape(IMAGE_DESCRIPTION_START) + r"(.*?)" + re.escape(IMAGE_DESCRIPTION_END),
    re.DOTALL,
)


def extract_image_description(response: str) -> str:
    """Text between the image description markers, or an empty string."""
    match = _IMAGE_DESCRIPTION_RE.search(response)
    return match.group(1).strip() if match else ""


def describe_upload(image: CapturedImage | None, is_manual: bool, description: str = "") -> str:
    """User-side text recorded for an image turn."""
    if image is not None:
        manual = str(is_manual).lower()
        text = f"Image uploaded ({image.width}x{image.height}, quality: {image.quality}, manual: {manual})"
    else:
        text = "Image uploaded"
    if description:
        text += f"\nImage Description: {description}"
    return text


class ReportSessionEngine:
    """
    Orchestrates capture, context assembly, completion and session recovery.

    Examples:
        ```python
        engine = ReportSessionEngine(capture=my_capture, completion=my_llm)
        await engine.initialize_session(api_key)
        result = await engine.generate_report()
        await engine.send_text_message("change the impression")
        ```
    """

    def __init__(
        self,
        capture: CaptureBackend,
        completion: CompletionBackend,
        settings: SettingsProvider | None = None,
        status_sink: StatusSink | None = None,
        persistence: PersistenceSink | None = None,
        session_manager: SessionManager | None = None,
        assembler: ContextAssembler | None = None,
        token_tracker: TokenTracker | None = None,
        reconnection_state: ReconnectionState | None = None,
        capture_timeout: float = DEFAULT_CAPTURE_TIMEOUT,
        source_cache_ttl: float = DEFAULT_SOURCE_CACHE_TTL,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._capture = capture
        self._completion = completion
        self._settings = settings
        self._status = status_sink if status_sink is not None else LoggingStatusSink()
        self._capture_timeout = capture_timeout

        self.sessions = session_manager if session_manager is not None else SessionManager(persistence=persistence)
        self.assembler = assembler if assembler is not None else ContextAssembler()
        self.tokens = token_tracker if token_tracker is not None else TokenTracker()
        self.selector = ScreenSourceSelector()
        self.sources = ScreenSourceCache(capture, ttl=source_cache_ttl)
        self.reconnection = ReconnectionController(
            reinitialize=self._reinitialize,
            status_sink=self._status,
            state=reconnection_state,
            sleep=sleep,
        )

        self._client: CompletionClient | None = None
        self._session_params: SessionParams | None = None
        self._initializing = False

        self._capture_initializing = False
        self._capture_initialized = False
        self._selected_source: ScreenSourceDescriptor | None = None
        self._image_quality = ImageQuality.MEDIUM

    # --- State ---

    @property
    def phase(self) -> ConnectionPhase:
        return self.reconnection.phase

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def session_params(self) -> SessionParams | None:
        return self._session_params

    @property
    def is_initializing(self) -> bool:
        return self._initializing

    @property
    def is_capture_initialized(self) -> bool:
        return self._capture_initialized

    def current_settings(self) -> EngineSettings:
        return EngineSettings.from_provider(self._settings)

    # --- Session lifecycle ---

    async def initialize_session(
        self,
        api_key: str,
        custom_prompt: str = "",
        profile: str = DEFAULT_PROFILE,
        language: str = "en-US",
        *,
        is_reconnection: bool = False,
    ) -> CompletionClient:
        """
        Connect the completion collaborator and (unless reconnecting) start a session.

        Raises:
            InitializationInProgress: another initialization is running.
            InvalidCredential: ``api_key`` is empty or not a string.
            TransportFailure: the completion collaborator refused to connect.
        """
        if self._initializing:
            logger.info("Session initialization already in progress")
            raise InitializationInProgress()

        self._initializing = True
        try:
            self._status.publish(SessionStatus.INITIALIZING.value)
            self.reconnection.phase = (
                ConnectionPhase.RECONNECTING if is_reconnection else ConnectionPhase.CONNECTING
            )

            if not isinstance(api_key, str) or not api_key.strip():
                logger.error("Invalid API key provided")
                raise InvalidCredential()

            if not is_reconnection:
                self._session_params = SessionParams(
                    api_key=api_key,
                    custom_prompt=custom_prompt or "",
                    profile=profile,
                    language=language,
                )
                self.reconnection.state.reset()

            settings = self.current_settings()
            tools = get_enabled_tools(settings.google_search_enabled)
            system_prompt = get_system_prompt(profile, custom_prompt or "", settings.google_search_enabled)
            logger.debug(f"Google Search enabled: {settings.google_search_enabled}")

            if not is_reconnection:
                self.sessions.start_new_session()

            try:
                client = await self._completion.connect(api_key.strip(), system_prompt, tools)
            except ReportEngineError:
                raise
            except Exception as e:
                logger.error(f"Failed to initialize completion session: {e}")
                self._status.publish(f"Error: {e}")
                raise TransportFailure(str(e)) from e

            self._client = client
            self.reconnection.mark_connected()
            if not is_reconnection:
                self._status.publish(SessionStatus.CONNECTED.value)
            logger.info(f"Completion session {'reconnected' if is_reconnection else 'connected'} (profile={profile})")
            return client
        except ReportEngineError:
            if not is_reconnection:
                self.reconnection.mark_idle()
            raise
        finally:
            self._initializing = False

    async def _reinitialize(self, params: SessionParams) -> CompletionClient:
        return await self.initialize_session(
            params.api_key.get_secret_value(),
            params.custom_prompt,
            params.profile,
            params.language,
            is_reconnection=True,
        )

    def close_session(self) -> None:
        """Drop the client and cached parameters so no reconnection follows."""
        self._session_params = None
        self._client = None
        self.reconnection.mark_idle()
        self._status.publish(SessionStatus.CLOSED.value)
        logger.info("Session closed")

    async def attempt_reconnection(self) -> bool:
        """Run the bounded reconnection loop with the cached parameters."""
        self._client = None
        return await self.reconnection.reconnect(self._session_params)

    def start_new_session(self) -> str:
        return self.sessions.start_new_session()

    def reset_context_window(self) -> None:
        self.sessions.reset_context_window()

    def get_session_snapshot(self) -> SessionSnapshot:
        return self.sessions.get_session_snapshot()

    # --- Capture ---

    async def start_capture(
        self,
        image_quality: ImageQuality | str = ImageQuality.MEDIUM,
    ) -> ScreenSourceDescriptor | None:
        """
        Prepare on-demand capture: reset the token budget, select a source and
        verify it can be captured.

        Returns:
            The selected source, or None when capture is already set up or being set up.

        Raises:
            InvalidRequest: ``image_quality`` is not a known preset.
        """
        if self._capture_initializing:
            logger.info("Screen capture initialization already in progress")
            return None
        if self._capture_initialized:
            logger.info("Screen capture already initialized")
            return None

        try:
            quality = ImageQuality(image_quality)
        except ValueError as e:
            raise InvalidRequest(f"Unknown image quality: {image_quality}") from e

        self.stop_capture()
        self._capture_initializing = True
        self._image_quality = quality
        self.tokens.reset()
        logger.debug("Token tracker reset for new capture session")

        try:
            source = await self._select_source(force=True)
            await self._capture_source(source)
        except ReportEngineError as e:
            logger.error(f"Error starting capture: {e}")
            self._status.publish(f"Error: {e}")
            raise
        finally:
            self._capture_initializing = False

        self._selected_source = source
        self._capture_initialized = True
        logger.info(f"Screen capture ready on source: {source.name}")
        return source

    def stop_capture(self) -> None:
        self._capture_initialized = False
        self._capture_initializing = False
        self._selected_source = None

    async def _select_source(self, force: bool = False) -> ScreenSourceDescriptor:
        sources = await self.sources.get_sources(force=force)
        if not sources:
            raise TransportFailure("No screen sources available")
        return self.selector.select(sources)

    async def _capture_source(self, source: ScreenSourceDescriptor) -> CapturedImage:
        try:
            image = await asyncio.wait_for(self._capture.capture_at(source.id), timeout=self._capture_timeout)
        except TimeoutError as e:
            raise CaptureTimeout(source.id, self._capture_timeout) from e
        except ReportEngineError:
            raise
        except Exception as e:
            raise TransportFailure(f"Failed to take direct screenshot: {e}") from e

        if image.quality is None:
            image = image.model_copy(update={"quality": self._image_quality.jpeg_quality})
        return image

    async def capture_screen(self) -> CapturedImage:
        """
        Capture the selected full-screen source.

        Raises:
            NoValidSourceError: no full-screen source is available.
            CaptureTimeout: the capture collaborator exceeded the timeout.
            TransportFailure: the capture collaborator failed.
        """
        source = await self._select_source()
        return await self._capture_source(source)

    # --- Requests ---

    async def generate_report(self, additional_context: str = "", *, is_manual: bool = True) -> ReportResult:
        """
        Capture the screen and ask for a report.

        Automated (non-manual) captures are skipped while the token budget is
        near its limit.
        """
        if not is_manual and self.tokens.should_throttle(self.current_settings()):
            logger.info("Screenshot skipped due to rate limiting")
            return ReportResult(success=False, throttled=True, error="Throttled")

        image = await self.capture_screen()
        return await self.send_image(image, additional_context, is_manual=is_manual)

    def _build_image_prompt(self, additional_context: str) -> tuple[str, RequestKind]:
        extra = (additional_context or "").strip()
        window = self.sessions.context_window
        if window.is_new or not window.turns:
            prompt = INITIAL_IMAGE_PROMPT
            if extra:
                prompt += ADDITIONAL_CONTEXT_TEMPLATE.format(context=extra)
            return prompt, RequestKind.PLAIN

        assembled = self.assembler.assemble(extra or FOLLOW_UP_IMAGE_PROMPT, window)
        return assembled.content, assembled.request_kind

    async def send_image(
        self,
        image: CapturedImage,
        additional_context: str = "",
        *,
        is_manual: bool = True,
    ) -> ReportResult:
        """
        Send a captured image with the contextual prompt and record the report.

        Raises:
            SessionNotActive: no completion session is connected.
            InvalidRequest: the image payload is missing or too small.
            TransportFailure: the completion call failed.
        """
        client = self._require_client()

        size = image.decoded_size()
        if size < MIN_IMAGE_BYTES:
            raise InvalidRequest(f"Image buffer too small: {size} bytes")

        prompt, kind = self._build_image_prompt(additional_context)
        parts: list[PromptPart] = [ImagePart.from_capture(image), TextPart(text=prompt)]

        started = time.monotonic()
        text = await self._complete(client, parts)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Report received in {elapsed_ms}ms ({len(text)} chars)")

        self.tokens.add_tokens(self.tokens.estimate_image_tokens(image.width, image.height), TokenKind.IMAGE)

        user_input = describe_upload(image, is_manual, extract_image_description(text))
        self.sessions.record_turn(user_input, text)

        return ReportResult(success=True, text=text, response_time_ms=elapsed_ms, request_kind=kind)

    async def send_text_message(self, text: str) -> ReportResult:
        """
        Send a follow-up message, wrapped with the current report when there is one.

        Raises:
            SessionNotActive: no completion session is connected.
            InvalidRequest: ``text`` is empty.
            TransportFailure: the completion call failed.
        """
        client = self._require_client()
        if not isinstance(text, str) or not text.strip():
            raise InvalidRequest("Invalid text message")

        message = text.strip()
        assembled = self.assembler.assemble(message, self.sessions.context_window)
        logger.debug(f"Contextual message built: {len(message)} -> {len(assembled.content)} chars")

        started = time.monotonic()
        response = await self._complete(client, [TextPart(text=assembled.content)])
        elapsed_ms = int((time.monotonic() - started) * 1000)

        self.sessions.record_turn(message, response)
        return ReportResult(
            success=True,
            text=response,
            response_time_ms=elapsed_ms,
            request_kind=assembled.request_kind,
        )

    def _require_client(self) -> CompletionClient:
        if self._client is None:
            raise SessionNotActive()
        return self._client

    async def _complete(self, client: CompletionClient, parts: Sequence[PromptPart]) -> str:
        try:
            return await client.complete(parts)
        except TransportFailure as e:
            failure = e
        except ReportEngineError:
            raise
        except Exception as e:
            failure = TransportFailure(str(e))
            failure.__cause__ = e

        logger.error(f"Completion request failed: {failure}")
        if self.phase == ConnectionPhase.CONNECTED and self._session_params is not None:
            await self.attempt_reconnection()
        raise failure
