"""Image and video generation jobs, driven to completion before they reach a conversation.

Images take one generation round trip followed by a description call that sees the
rendered picture. Videos are long-running operations polled with a growing interval
until done, until the deadline passes, or until the status call keeps failing.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from tutor import prompts
from tutor.config import Settings
from tutor.errors import MediaGenerationFailed, MediaGenerationTimeout, UpstreamUnavailable
from tutor.gemini_client import GenerativeBackend
from tutor.schemas import Attachment, AttachmentKind, Message, Speaker

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    requested = "requested"
    polling = "polling"
    ready = "ready"
    failed = "failed"


@dataclass
class MediaJob:
    kind: AttachmentKind
    prompt: str
    state: JobState = JobState.requested
    resultURI: str | None = None
    polls: int = 0

    def ready(self, uri: str) -> None:
        self.state = JobState.ready
        self.resultURI = uri

    def fail(self) -> None:
        self.state = JobState.failed
        self.resultURI = None


@dataclass(frozen=True)
class PollPolicy:
    interval: float = 5.0
    backoff: float = 1.5
    max_interval: float = 30.0
    timeout: float = 600.0
    max_status_errors: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> PollPolicy:
        return cls(
            interval=settings.video_poll_interval,
            backoff=settings.video_poll_backoff,
            max_interval=settings.video_poll_max_interval,
            timeout=settings.video_timeout,
            max_status_errors=settings.video_max_status_errors,
        )

    def next_interval(self, current: float) -> float:
        return min(current * self.backoff, self.max_interval)


class MediaJobResolver:
    def __init__(
        self,
        backend: GenerativeBackend,
        policy: PollPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.policy = policy or PollPolicy()
        self._sleep = sleep
        self._clock = clock

    async def resolve_image(self, prompt: str) -> Message:
        return await self.run_image_job(MediaJob(kind=AttachmentKind.image, prompt=prompt))

    async def resolve_video(self, prompt: str) -> Message:
        return await self.run_video_job(MediaJob(kind=AttachmentKind.video, prompt=prompt))

    async def run_image_job(self, job: MediaJob) -> Message:
        try:
            image = await self.backend.generate_image(prompts.image_prompt(job.prompt), aspect_ratio="1:1")
            if image is None:
                raise MediaGenerationFailed("image", "no inline image in the response")
            description = await self.backend.generate_text(
                prompts.image_description_prompt(job.prompt), image=image
            )
        except (UpstreamUnavailable, MediaGenerationFailed):
            job.fail()
            raise

        attachment = Attachment.inline_image(image.data, image.mime_type)
        job.ready(attachment.uri)
        return Message(
            speaker=Speaker.tutor,
            body=description or prompts.image_caption(job.prompt),
            attachment=attachment,
        )

    async def run_video_job(self, job: MediaJob) -> Message:
        try:
            uri = await self._poll_until_done(job)
        except (UpstreamUnavailable, MediaGenerationFailed):
            job.fail()
            raise
        job.ready(uri)
        return Message(
            speaker=Speaker.tutor,
            body=prompts.video_caption(job.prompt),
            attachment=Attachment.video(uri),
        )

    async def _poll_until_done(self, job: MediaJob) -> str:
        policy = self.policy
        operation = await self.backend.start_video(
            prompts.video_prompt(job.prompt), resolution="720p", aspect_ratio="16:9"
        )
        job.state = JobState.polling

        started = self._clock()
        delay = policy.interval
        status_errors = 0
        while not operation.done:
            elapsed = self._clock() - started
            if elapsed >= policy.timeout:
                logger.warning("Video job for %r timed out after %d polls", job.prompt, job.polls)
                raise MediaGenerationTimeout("video", elapsed)
            await self._sleep(min(delay, policy.timeout - elapsed))
            delay = policy.next_interval(delay)
            job.polls += 1
            try:
                operation = await self.backend.poll_video(operation)
            except UpstreamUnavailable:
                status_errors += 1
                if status_errors >= policy.max_status_errors:
                    raise
                logger.warning("Video status call failed (%d/%d), retrying", status_errors, policy.max_status_errors)
                continue
            status_errors = 0

        if not operation.uri:
            raise MediaGenerationFailed("video", "operation finished without a video URI")
        return operation.uri
