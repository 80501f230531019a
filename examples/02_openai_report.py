# examples/02_openai_report.py
"""
🤖 OPENAI REPORT

Generates a report for an image file using the OpenAI backend.

Setup:
    1. pip install screen-report-session[openai]
    2. Create .env file in project root with:
       OPENAI_API_KEY=your-api-key-here

Run:
    python examples/02_openai_report.py path/to/image.jpg
"""

import asyncio
import base64
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from screen_report_session import (
    CapturedImage,
    JsonFileConversationStore,
    ReportSessionEngine,
    ScreenSourceDescriptor,
)
from screen_report_session.openai_backend import OpenAICompletionBackend

load_dotenv()


class FileCapture:
    """Pretends an image file on disk is the primary screen."""

    def __init__(self, path, width=1024, height=1024):
        self.path = Path(path)
        self.width = width
        self.height = height

    async def list_sources(self):
        return [ScreenSourceDescriptor(id="screen:0", name="Screen 1")]

    async def capture_at(self, source_id):
        data = base64.b64encode(self.path.read_bytes()).decode("ascii")
        return CapturedImage(data=data, width=self.width, height=self.height)


async def main():
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        print("❌ OPENAI_API_KEY not found!")
        return
    if len(sys.argv) < 2:
        print("Usage: python examples/02_openai_report.py path/to/image.jpg")
        return

    engine = ReportSessionEngine(
        capture=FileCapture(sys.argv[1]),
        completion=OpenAICompletionBackend(),
        persistence=JsonFileConversationStore(".sessions"),
    )
    await engine.initialize_session(api_key)

    result = await engine.generate_report("Adult patient, routine study")
    print(f"📄 Report:\n{result.text}")

    follow_up = await engine.send_text_message("Shorten the findings to three bullet points")
    print(f"\n✏️  Revised:\n{follow_up.text}")

    print(f"\n💾 Saved session {engine.sessions.session_id} to .sessions/")


if __name__ == "__main__":
    asyncio.run(main())
