from __future__ import annotations

import logging

from tutor import prompts
from tutor.commands import ImageJobRequest, VideoJobRequest, dispatch
from tutor.errors import MediaGenerationFailed, SessionBusy, UpstreamUnavailable
from tutor.gemini_client import GenerativeBackend, InlineImage
from tutor.media import MediaJobResolver
from tutor.protocol import parse_single
from tutor.schemas import Attachment, Message, Speaker

logger = logging.getLogger(__name__)


class ConversationSession:
    """Append-only message log for one subject."""

    def __init__(self, subject: str) -> None:
        self.subject = subject
        self.busy = False
        self._messages: list[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


def fallback_reply() -> Message:
    return Message(speaker=Speaker.tutor, body=prompts.FALLBACK_REPLY)


class Tutor:
    """Runs one learner message through dispatch and appends the resolved reply."""

    def __init__(self, backend: GenerativeBackend, resolver: MediaJobResolver | None = None) -> None:
        self.backend = backend
        self.resolver = resolver or MediaJobResolver(backend)

    async def send(
        self, conversation: ConversationSession, text: str, attachment: Attachment | None = None
    ) -> Message | None:
        if not text.strip() and attachment is None:
            return None
        if conversation.busy:
            raise SessionBusy(f"a reply for {conversation.subject!r} is still being generated")

        conversation.busy = True
        try:
            conversation.append(Message(speaker=Speaker.user, body=text, attachment=attachment))
            try:
                reply = await self._respond(conversation.subject, text, attachment)
            except (UpstreamUnavailable, MediaGenerationFailed):
                logger.exception("Tutor reply failed for subject %r", conversation.subject)
                reply = fallback_reply()
            conversation.append(reply)
        finally:
            conversation.busy = False
        return reply

    async def _respond(self, subject: str, text: str, attachment: Attachment | None) -> Message:
        action = dispatch(text, attachment)
        if isinstance(action, ImageJobRequest):
            return await self.resolver.resolve_image(action.prompt)
        if isinstance(action, VideoJobRequest):
            return await self.resolver.resolve_video(action.prompt)

        image = None
        if action.attachment is not None:
            decoded = action.attachment.image_bytes()
            if decoded is not None:
                image = InlineImage(data=decoded[0], mime_type=decoded[1])
        raw = await self.backend.generate_text(
            prompts.tutor_prompt(subject, action.text), image=image, grounding=True
        )
        if not raw.strip():
            raise UpstreamUnavailable("model returned an empty reply")
        return parse_single(raw)

    async def study_plan(self, topic: str) -> str:
        try:
            text = await self.backend.generate_text(prompts.study_plan_prompt(topic))
        except UpstreamUnavailable:
            logger.exception("Study plan generation failed for %r", topic)
            return prompts.FALLBACK_REPLY
        return text or prompts.FALLBACK_REPLY
