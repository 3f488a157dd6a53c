from __future__ import annotations

from dataclasses import dataclass, field

from cachetools import TTLCache

from tutor.assessment import AssessmentEngine
from tutor.conversation import ConversationSession
from tutor.errors import UnsupportedCapability
from tutor.schemas import SpeechModality


@dataclass
class SessionState:
    conversations: dict[str, ConversationSession] = field(default_factory=dict)
    assessment: AssessmentEngine | None = None
    disabled_speech: set[SpeechModality] = field(default_factory=set)

    def conversation(self, subject: str) -> ConversationSession:
        conv = self.conversations.get(subject)
        if conv is None:
            conv = ConversationSession(subject)
            self.conversations[subject] = conv
        return conv

    def disable(self, err: UnsupportedCapability) -> None:
        self.disabled_speech.add(SpeechModality(err.modality))

    @property
    def enabled_speech(self) -> list[SpeechModality]:
        return [m for m in SpeechModality if m not in self.disabled_speech]


class SessionStore:
    def __init__(self, *, maxsize: int = 10_000, ttl_seconds: int = 60 * 60) -> None:
        self._cache: TTLCache[str, SessionState] = TTLCache(maxsize=maxsize, ttl=ttl_seconds)

    def get(self, session_id: str) -> SessionState | None:
        return self._cache.get(session_id)

    def get_or_create(self, session_id: str) -> SessionState:
        state = self._cache.get(session_id)
        if state is None:
            state = SessionState()
            self._cache[session_id] = state
        return state
