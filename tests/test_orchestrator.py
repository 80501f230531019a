# tests/test_orchestrator.py
"""
End-to-end tests for ReportSessionEngine wired to fake collaborators.
"""

import asyncio
import base64

import pytest

from screen_report_session.collaborators import DictSettings
from screen_report_session.exceptions import (
    CaptureTimeout,
    InitializationInProgress,
    InvalidCredential,
    InvalidRequest,
    NoValidSourceError,
    SessionNotActive,
    TransportFailure,
)
from screen_report_session.models import (
    CapturedImage,
    ConnectionPhase,
    ImagePart,
    RequestKind,
    ScreenSourceDescriptor,
    TextPart,
    TokenKind,
)
from screen_report_session.orchestrator import (
    ReportSessionEngine,
    describe_upload,
    extract_image_description,
)
from screen_report_session.prompts import (
    IMAGE_DESCRIPTION_END,
    IMAGE_DESCRIPTION_START,
    INITIAL_IMAGE_PROMPT,
    MODIFICATION_INSTRUCTIONS,
)
from screen_report_session.storage import InMemoryConversationStore
from tests.conftest import REPORT_TEXT, FakeCaptureBackend, FakeCompletionBackend, make_image, no_sleep


async def connected(engine):
    await engine.initialize_session("sk-test", "Patient is 54 years old")
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestUploadDescription:
    def test_extract_description(self):
        response = f"{IMAGE_DESCRIPTION_START}\nA frontal chest film.\n{IMAGE_DESCRIPTION_END}\n{REPORT_TEXT}"
        assert extract_image_description(response) == "A frontal chest film."

    def test_extract_missing_description(self):
        assert extract_image_description(REPORT_TEXT) == ""

    def test_describe_upload(self):
        image = make_image(width=800, height=600).model_copy(update={"quality": 0.7})
        text = describe_upload(image, is_manual=False, description="A knee.")
        assert text == "Image uploaded (800x600, quality: 0.7, manual: false)\nImage Description: A knee."

    def test_describe_upload_without_image(self):
        assert describe_upload(None, is_manual=True) == "Image uploaded"


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestInitialize:
    @pytest.mark.asyncio
    async def test_connects_and_starts_session(self, engine, completion_backend, status_sink):
        await connected(engine)

        assert engine.is_connected
        assert engine.phase == ConnectionPhase.CONNECTED
        assert engine.sessions.session_id is not None
        assert status_sink.statuses == ["Session initializing", "Session connected"]

        connect = completion_backend.connects[0]
        assert connect["api_key"] == "sk-test"
        assert connect["tools"] == [{"googleSearch": {}}]
        assert "Patient is 54 years old" in connect["system_instruction"]
        assert "MEDICAL REFERENCE USAGE" in connect["system_instruction"]

    @pytest.mark.asyncio
    async def test_search_disabled(self, capture_backend, completion_backend):
        engine = ReportSessionEngine(
            capture=capture_backend,
            completion=completion_backend,
            settings=DictSettings({"googleSearchEnabled": "false"}),
        )
        await engine.initialize_session("sk-test")

        connect = completion_backend.connects[0]
        assert connect["tools"] == []
        assert "MEDICAL REFERENCE USAGE" not in connect["system_instruction"]

    @pytest.mark.asyncio
    async def test_params_cached_without_leaking_key(self, engine):
        await connected(engine)
        params = engine.session_params
        assert params.api_key.get_secret_value() == "sk-test"
        assert "sk-test" not in repr(params)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("api_key", ["", "   ", None, 123])
    async def test_invalid_key(self, engine, completion_backend, api_key):
        with pytest.raises(InvalidCredential):
            await engine.initialize_session(api_key)

        assert engine.session_params is None
        assert completion_backend.connects == []
        assert engine.phase == ConnectionPhase.IDLE
        assert not engine.is_initializing

    @pytest.mark.asyncio
    async def test_duplicate_initialization_rejected(self, capture_backend, status_sink):
        gate = asyncio.Event()

        class SlowBackend(FakeCompletionBackend):
            async def connect(self, api_key, system_instruction, tools):
                await gate.wait()
                return await super().connect(api_key, system_instruction, tools)

        backend = SlowBackend()
        engine = ReportSessionEngine(capture=capture_backend, completion=backend, status_sink=status_sink)

        first = asyncio.create_task(engine.initialize_session("sk-test"))
        await asyncio.sleep(0)
        assert engine.is_initializing

        with pytest.raises(InitializationInProgress):
            await engine.initialize_session("sk-test")

        gate.set()
        await first
        assert len(backend.connects) == 1
        assert engine.is_connected

    @pytest.mark.asyncio
    async def test_fresh_failure_surfaced_without_retry(self, engine, completion_backend, status_sink):
        completion_backend.connect_errors = [RuntimeError("quota exceeded")]

        with pytest.raises(TransportFailure, match="quota exceeded"):
            await connected(engine)

        assert len(completion_backend.connects) == 1
        assert engine.phase == ConnectionPhase.IDLE
        assert status_sink.last == "Error: quota exceeded"
        assert not engine.is_initializing

    @pytest.mark.asyncio
    async def test_new_initialization_starts_new_session(self, engine):
        await connected(engine)
        first = engine.sessions.session_id
        await connected(engine)
        assert engine.sessions.session_id != first


class TestClose:
    @pytest.mark.asyncio
    async def test_close_clears_params(self, engine, status_sink):
        await connected(engine)
        engine.close_session()

        assert engine.session_params is None
        assert not engine.is_connected
        assert status_sink.last == "Session closed"

    @pytest.mark.asyncio
    async def test_no_reconnection_after_close(self, engine, completion_backend):
        await connected(engine)
        engine.close_session()

        assert await engine.attempt_reconnection() is False
        assert len(completion_backend.connects) == 1

    @pytest.mark.asyncio
    async def test_requests_rejected_after_close(self, engine):
        await connected(engine)
        engine.close_session()
        with pytest.raises(SessionNotActive):
            await engine.send_text_message("hello")


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


class TestCapture:
    @pytest.mark.asyncio
    async def test_start_capture_selects_screen(self, engine, capture_backend):
        engine.tokens.add_tokens(500)
        source = await engine.start_capture("high")

        assert source.id == "screen:0"
        assert engine.is_capture_initialized
        assert engine.tokens.tokens_in_last_minute() == 0
        assert capture_backend.captured == ["screen:0"]

    @pytest.mark.asyncio
    async def test_start_capture_twice(self, engine):
        await engine.start_capture()
        assert await engine.start_capture() is None

    @pytest.mark.asyncio
    async def test_unknown_quality_leaves_capture_startable(self, engine, capture_backend):
        engine.tokens.add_tokens(500)
        with pytest.raises(InvalidRequest, match="ultra"):
            await engine.start_capture("ultra")

        assert capture_backend.captured == []
        source = await engine.start_capture("high")
        assert source.id == "screen:0"
        assert engine.is_capture_initialized
        assert engine.tokens.tokens_in_last_minute() == 0

    @pytest.mark.asyncio
    async def test_start_capture_failure_publishes_error(self, engine, capture_backend, status_sink):
        capture_backend.capture_error = RuntimeError("permission denied")
        with pytest.raises(TransportFailure):
            await engine.start_capture()

        assert status_sink.last == "Error: Failed to take direct screenshot: permission denied"
        assert not engine.is_capture_initialized

    @pytest.mark.asyncio
    async def test_capture_applies_quality(self, engine):
        await engine.start_capture("low")
        image = await engine.capture_screen()
        assert image.quality == 0.5

    @pytest.mark.asyncio
    async def test_only_windows(self, completion_backend):
        capture = FakeCaptureBackend(sources=[ScreenSourceDescriptor(id="window:1", name="Editor")])
        engine = ReportSessionEngine(capture=capture, completion=completion_backend)
        with pytest.raises(NoValidSourceError):
            await engine.capture_screen()

    @pytest.mark.asyncio
    async def test_no_sources(self, completion_backend):
        engine = ReportSessionEngine(capture=FakeCaptureBackend(sources=[]), completion=completion_backend)
        with pytest.raises(TransportFailure, match="No screen sources available"):
            await engine.capture_screen()

    @pytest.mark.asyncio
    async def test_capture_timeout(self, completion_backend):
        class HangingCapture(FakeCaptureBackend):
            async def capture_at(self, source_id):
                await asyncio.sleep(10)

        engine = ReportSessionEngine(capture=HangingCapture(), completion=completion_backend, capture_timeout=0.01)
        with pytest.raises(CaptureTimeout) as exc:
            await engine.capture_screen()
        assert exc.value.source_id == "screen:0"

    @pytest.mark.asyncio
    async def test_capture_error_wrapped(self, engine, capture_backend):
        capture_backend.capture_error = OSError("display gone")
        with pytest.raises(TransportFailure, match="display gone"):
            await engine.capture_screen()


# ---------------------------------------------------------------------------
# Reports and follow-ups
# ---------------------------------------------------------------------------


class TestGenerateReport:
    @pytest.mark.asyncio
    async def test_first_report(self, engine, completion_backend, conversation_store):
        await connected(engine)
        result = await engine.generate_report()

        assert result.success
        assert result.text == REPORT_TEXT
        assert result.request_kind == RequestKind.PLAIN

        parts = completion_backend.client.requests[0]
        assert isinstance(parts[0], ImagePart)
        assert isinstance(parts[1], TextPart)
        assert parts[1].text == INITIAL_IMAGE_PROMPT

        history = engine.sessions.history
        assert history[0].user_input == "Image uploaded (1920x1080, quality: 0.7, manual: true)"
        assert history[0].ai_response == REPORT_TEXT

        stored = conversation_store.get_session(engine.sessions.session_id)
        assert len(stored.conversation_history) == 1

    @pytest.mark.asyncio
    async def test_records_image_tokens(self, engine):
        await connected(engine)
        await engine.generate_report()
        # 1920x1080 is tiled 3x2
        assert engine.tokens.tokens_by_kind()[TokenKind.IMAGE] == 6 * 258

    @pytest.mark.asyncio
    async def test_additional_context_in_first_prompt(self, engine, completion_backend):
        await connected(engine)
        await engine.generate_report("follow-up for pneumonia")
        prompt = completion_backend.client.requests[0][1].text
        assert prompt.startswith(INITIAL_IMAGE_PROMPT)
        assert "Additional context provided by the user: follow-up for pneumonia" in prompt

    @pytest.mark.asyncio
    async def test_second_report_carries_previous(self, engine, completion_backend):
        await connected(engine)
        await engine.generate_report()
        result = await engine.generate_report()

        prompt = completion_backend.client.requests[1][1].text
        assert result.request_kind == RequestKind.NEW_IMAGE
        assert prompt.startswith(f"PREVIOUS REPORT:\n{REPORT_TEXT}")
        assert "NEW IMAGE ANALYSIS REQUEST:" in prompt

    @pytest.mark.asyncio
    async def test_description_recorded(self, engine, completion_backend):
        completion_backend.responses.append(
            f"{IMAGE_DESCRIPTION_START}A hand radiograph.{IMAGE_DESCRIPTION_END}\n{REPORT_TEXT}"
        )
        await connected(engine)
        await engine.generate_report()
        assert engine.sessions.history[0].user_input.endswith("\nImage Description: A hand radiograph.")

    @pytest.mark.asyncio
    async def test_requires_session(self, engine):
        with pytest.raises(SessionNotActive):
            await engine.generate_report()

    @pytest.mark.asyncio
    async def test_small_image_rejected(self, engine):
        await connected(engine)
        with pytest.raises(InvalidRequest):
            await engine.send_image(make_image(size=500))
        assert engine.sessions.history == []

    @pytest.mark.asyncio
    async def test_line_wrapped_image_accepted(self, engine, completion_backend):
        wrapped = base64.encodebytes(b"\xff\xd8" + b"\x00" * 4094).decode("ascii")
        assert "\n" in wrapped
        await connected(engine)

        result = await engine.send_image(CapturedImage(data=wrapped, width=800, height=600))

        assert result.success
        assert "\n" not in completion_backend.client.requests[0][0].data

    @pytest.mark.asyncio
    async def test_fresh_store_receives_turns(self, capture_backend, completion_backend):
        store = InMemoryConversationStore()
        engine = ReportSessionEngine(capture=capture_backend, completion=completion_backend, persistence=store)
        await connected(engine)
        await engine.generate_report()

        assert len(store) == 1
        assert store.get_session(engine.sessions.session_id) is not None


class TestThrottle:
    @pytest.fixture
    def throttled_engine(self, capture_backend, completion_backend):
        settings = DictSettings({"throttleTokens": "true", "maxTokensPerMin": "1000", "throttleAtPercent": "75"})
        return ReportSessionEngine(capture=capture_backend, completion=completion_backend, settings=settings)

    @pytest.mark.asyncio
    async def test_automated_capture_skipped(self, throttled_engine, capture_backend):
        await connected(throttled_engine)
        await throttled_engine.generate_report()
        captures = len(capture_backend.captured)

        result = await throttled_engine.generate_report(is_manual=False)

        assert not result.success
        assert result.throttled
        assert len(capture_backend.captured) == captures

    @pytest.mark.asyncio
    async def test_manual_capture_never_throttled(self, throttled_engine):
        await connected(throttled_engine)
        await throttled_engine.generate_report()
        result = await throttled_engine.generate_report(is_manual=True)
        assert result.success

    @pytest.mark.asyncio
    async def test_settings_read_on_every_decision(self, capture_backend, completion_backend):
        settings = DictSettings({"maxTokensPerMin": "1000"})
        engine = ReportSessionEngine(capture=capture_backend, completion=completion_backend, settings=settings)
        await connected(engine)
        await engine.generate_report()
        assert (await engine.generate_report(is_manual=False)).success

        settings.set("throttleTokens", "true")
        assert (await engine.generate_report(is_manual=False)).throttled

    @pytest.mark.asyncio
    async def test_throttling_off_by_default(self, engine):
        await connected(engine)
        await engine.generate_report()
        engine.tokens.add_tokens(10_000_000)
        result = await engine.generate_report(is_manual=False)
        assert result.success


class TestSendText:
    @pytest.mark.asyncio
    async def test_modification_wraps_report(self, engine, completion_backend):
        await connected(engine)
        await engine.generate_report()
        result = await engine.send_text_message("  change the impression ")

        sent = completion_backend.client.requests[1]
        assert len(sent) == 1
        assert sent[0].text.startswith(f"PREVIOUS REPORT:\n{REPORT_TEXT}")
        assert "USER REQUEST:\nchange the impression" in sent[0].text
        assert sent[0].text.endswith(MODIFICATION_INSTRUCTIONS)
        assert result.request_kind == RequestKind.MODIFICATION
        assert engine.sessions.history[-1].user_input == "change the impression"

    @pytest.mark.asyncio
    async def test_plain_after_reset(self, engine, completion_backend):
        await connected(engine)
        await engine.generate_report()
        engine.reset_context_window()
        result = await engine.send_text_message("hello")

        assert completion_backend.client.requests[1][0].text == "hello"
        assert result.request_kind == RequestKind.PLAIN
        assert len(engine.get_session_snapshot().history) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_text_rejected(self, engine, text):
        await connected(engine)
        with pytest.raises(InvalidRequest):
            await engine.send_text_message(text)

    @pytest.mark.asyncio
    async def test_requires_session(self, engine):
        with pytest.raises(SessionNotActive):
            await engine.send_text_message("hello")


# ---------------------------------------------------------------------------
# Reconnection
# ---------------------------------------------------------------------------


class TestReconnection:
    @pytest.mark.asyncio
    async def test_transport_failure_reconnects(self, engine, completion_backend, status_sink):
        await connected(engine)
        await engine.generate_report()
        session_id = engine.sessions.session_id
        completion_backend.responses.append(TransportFailure("connection reset"))

        with pytest.raises(TransportFailure, match="connection reset"):
            await engine.send_text_message("change the impression")

        assert len(completion_backend.connects) == 2
        assert engine.is_connected
        assert engine.phase == ConnectionPhase.CONNECTED
        assert engine.reconnection.state.attempts == 0
        assert status_sink.last == "Session connected"
        # Reconnection keeps the conversation
        assert engine.sessions.session_id == session_id
        assert len(engine.sessions.history) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_treated_as_transport_failure(self, engine, completion_backend):
        await connected(engine)
        completion_backend.responses.append(ConnectionError("socket closed"))

        with pytest.raises(TransportFailure, match="socket closed"):
            await engine.send_text_message("hello")
        assert len(completion_backend.connects) == 2

    @pytest.mark.asyncio
    async def test_abandoned_after_max_attempts(self, engine, completion_backend, status_sink):
        await connected(engine)
        completion_backend.responses.append(TransportFailure("connection reset"))
        completion_backend.connect_errors = [RuntimeError("offline")] * 3

        with pytest.raises(TransportFailure):
            await engine.send_text_message("hello")

        assert len(completion_backend.connects) == 1 + 3
        assert engine.phase == ConnectionPhase.ABANDONED
        assert not engine.is_connected
        assert status_sink.last == "Session closed"

    @pytest.mark.asyncio
    async def test_explicit_initialize_after_abandon(self, engine, completion_backend):
        await connected(engine)
        completion_backend.responses.append(TransportFailure("connection reset"))
        completion_backend.connect_errors = [RuntimeError("offline")] * 3
        with pytest.raises(TransportFailure):
            await engine.send_text_message("hello")

        await connected(engine)
        assert engine.phase == ConnectionPhase.CONNECTED
        assert engine.reconnection.state.attempts == 0

    @pytest.mark.asyncio
    async def test_request_errors_do_not_reconnect(self, engine, completion_backend):
        await connected(engine)
        completion_backend.responses.append(InvalidRequest("bad payload"))
        with pytest.raises(InvalidRequest):
            await engine.send_text_message("hello")
        assert len(completion_backend.connects) == 1


class TestIndependentInstances:
    @pytest.mark.asyncio
    async def test_engines_share_no_state(self, capture_backend):
        first = ReportSessionEngine(capture=capture_backend, completion=FakeCompletionBackend(), sleep=no_sleep)
        second = ReportSessionEngine(capture=capture_backend, completion=FakeCompletionBackend(), sleep=no_sleep)

        await connected(first)
        await first.generate_report()

        assert second.sessions.session_id is None
        assert second.tokens.tokens_in_last_minute() == 0
        assert not second.is_connected
