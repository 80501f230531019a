# tests/conftest.py
"""
Shared pytest fixtures for screen_report_session tests.

Fakes stand in for every external collaborator: a capture backend with a
configurable source list, a completion backend that replays scripted answers,
a controllable clock and a recording status sink.
"""

import base64
import logging

import pytest

from screen_report_session.collaborators import DictSettings, RecordingStatusSink
from screen_report_session.models import CapturedImage, ScreenSourceDescriptor
from screen_report_session.storage import InMemoryConversationStore

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("screen_report_session").setLevel(logging.DEBUG)

REPORT_TEXT = """CLINICAL HISTORY: Clinical history not provided.

TECHNIQUE: Single frontal chest radiograph.

FINDINGS:
- Lungs are clear.

IMPRESSION:
1. No acute cardiopulmonary abnormality."""


def make_image(width=1920, height=1080, size=4096):
    """A CapturedImage carrying ``size`` bytes of payload."""
    return CapturedImage(
        data=base64.b64encode(b"\xff\xd8" + b"\x00" * (size - 2)).decode("ascii"),
        width=width,
        height=height,
    )


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeCaptureBackend:
    """Capture collaborator returning fixed sources and images."""

    def __init__(self, sources=None, image=None):
        self.sources = sources if sources is not None else [
            ScreenSourceDescriptor(id="screen:0", name="Screen 1"),
            ScreenSourceDescriptor(id="window:1", name="Editor"),
        ]
        self.image = image or make_image()
        self.list_calls = 0
        self.captured = []
        self.capture_error = None

    async def list_sources(self):
        self.list_calls += 1
        return list(self.sources)

    async def capture_at(self, source_id):
        if self.capture_error:
            raise self.capture_error
        self.captured.append(source_id)
        return self.image


class FakeCompletionClient:
    """Replays scripted responses; an Exception instance in the script is raised."""

    def __init__(self, responses):
        self._responses = responses
        self.requests = []

    async def complete(self, parts):
        self.requests.append(list(parts))
        if not self._responses:
            return REPORT_TEXT
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeCompletionBackend:
    """Completion collaborator; ``connect_errors`` fail the next connects in order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.connect_errors = []
        self.connects = []
        self.client = None

    async def connect(self, api_key, system_instruction, tools):
        self.connects.append({"api_key": api_key, "system_instruction": system_instruction, "tools": tools})
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        self.client = FakeCompletionClient(self.responses)
        return self.client


async def no_sleep(seconds):
    return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def status_sink():
    return RecordingStatusSink()


@pytest.fixture
def capture_backend():
    return FakeCaptureBackend()


@pytest.fixture
def completion_backend():
    return FakeCompletionBackend()


@pytest.fixture
def settings():
    return DictSettings({"googleSearchEnabled": "true"})


@pytest.fixture
def conversation_store():
    return InMemoryConversationStore()


@pytest.fixture
def engine(capture_backend, completion_backend, settings, status_sink, conversation_store):
    """A ReportSessionEngine wired to fakes, with reconnection delays disabled."""
    from screen_report_session.orchestrator import ReportSessionEngine

    return ReportSessionEngine(
        capture=capture_backend,
        completion=completion_backend,
        settings=settings,
        status_sink=status_sink,
        persistence=conversation_store,
        sleep=no_sleep,
    )
