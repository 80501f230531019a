# examples/01_offline_session.py
"""
📋 OFFLINE SESSION: Reports, follow-ups and context windows

Runs the whole engine against in-process stand-ins for the screen grabber and
the model, so it needs no API key and no display.
"""

import asyncio
import base64

from screen_report_session import (
    CapturedImage,
    RecordingStatusSink,
    ReportSessionEngine,
    ScreenSourceDescriptor,
)

REPORT = """CLINICAL HISTORY: Cough for two weeks.

TECHNIQUE: PA chest radiograph.

FINDINGS:
- Lungs are clear.

IMPRESSION:
1. No acute cardiopulmonary abnormality."""


class StaticCapture:
    """Two sources; every capture returns the same blank JPEG-sized payload."""

    async def list_sources(self):
        return [
            ScreenSourceDescriptor(id="window:7", name="Viewer"),
            ScreenSourceDescriptor(id="screen:0", name="Screen 1"),
        ]

    async def capture_at(self, source_id):
        data = base64.b64encode(b"\xff\xd8" + b"\x00" * 4094).decode("ascii")
        return CapturedImage(data=data, width=1920, height=1080)


class CannedModel:
    """Answers images with a report and text with an edited report."""

    async def connect(self, api_key, system_instruction, tools):
        return self

    async def complete(self, parts):
        text = parts[-1].text
        if "USER REQUEST:" in text:
            return REPORT.replace("No acute", "No acute or chronic")
        return REPORT


async def main():
    status = RecordingStatusSink()
    engine = ReportSessionEngine(capture=StaticCapture(), completion=CannedModel(), status_sink=status)

    await engine.initialize_session("offline-key", custom_prompt="Cough for two weeks")
    source = await engine.start_capture("high")
    print(f"🖥️  Capturing from: {source.name}")

    result = await engine.generate_report()
    print(f"\n📄 Report ({result.response_time_ms}ms):\n{result.text}")

    edit = await engine.send_text_message("make the impression more specific")
    print(f"\n✏️  Edited ({edit.request_kind.value}):\n{edit.text}")

    engine.reset_context_window()
    print("\n🔄 Context window reset")

    stats = engine.sessions.get_stats()
    print("\n📈 Session Stats:")
    print(f"  Session: {stats.session_id}")
    print(f"  Turns: {stats.total_turns} ({stats.report_turns} reports)")
    print(f"  Turns in context window: {stats.context_window_turns}")
    print(f"  Image tokens this minute: {engine.tokens.tokens_in_last_minute()}")
    print(f"  Status history: {status.statuses}")


if __name__ == "__main__":
    asyncio.run(main())
