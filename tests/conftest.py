"""Shared pytest fixtures for the tutoring engine tests.

Provides:
- ``backend``: scripted in-process ``GenerativeBackend``
- ``clock``: fake monotonic clock whose ``sleep`` advances time instantly
"""

from __future__ import annotations

import asyncio

import pytest

from tutor.gemini_client import InlineImage, VideoOperation


class FakeBackend:
    """Replays scripted replies.

    ``text_replies`` entries are a string, an exception to raise, or an
    ``(asyncio.Event, reply)`` pair that blocks until the event is set.
    """

    def __init__(self) -> None:
        self.text_replies: list = []
        self.text_calls: list[dict] = []
        self.image: InlineImage | Exception | None = None
        self.image_calls: list[dict] = []
        self.video_start: VideoOperation | Exception = VideoOperation(handle="op-1")
        self.video_polls: list = []
        self.video_calls: list[dict] = []
        self.poll_count = 0

    async def generate_text(self, prompt, *, image=None, grounding=False):
        self.text_calls.append({"prompt": prompt, "image": image, "grounding": grounding})
        reply = self.text_replies.pop(0) if self.text_replies else ""
        if isinstance(reply, tuple):
            gate, reply = reply
            await gate.wait()
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate_image(self, prompt, *, aspect_ratio="1:1"):
        self.image_calls.append({"prompt": prompt, "aspect_ratio": aspect_ratio})
        if isinstance(self.image, Exception):
            raise self.image
        return self.image

    async def start_video(self, prompt, *, resolution="720p", aspect_ratio="16:9"):
        self.video_calls.append({"prompt": prompt, "resolution": resolution, "aspect_ratio": aspect_ratio})
        if isinstance(self.video_start, Exception):
            raise self.video_start
        return self.video_start

    async def poll_video(self, operation):
        self.poll_count += 1
        nxt = self.video_polls.pop(0) if self.video_polls else VideoOperation(handle=operation.handle)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def png() -> InlineImage:
    return InlineImage(data=b"\x89PNG\r\n\x1a\nfake", mime_type="image/png")
