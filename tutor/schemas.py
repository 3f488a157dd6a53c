from __future__ import annotations

import base64
import binascii
from enum import Enum

from pydantic import BaseModel, Field, computed_field, model_validator

LABELS: tuple[str, ...] = ("A", "B", "C", "D")


class Speaker(str, Enum):
    user = "user"
    tutor = "tutor"


class Presentation(str, Enum):
    plain = "plain"
    quiz = "quiz"


class AttachmentKind(str, Enum):
    image = "image"
    video = "video"


class Attachment(BaseModel):
    kind: AttachmentKind
    uri: str = Field(..., min_length=1, description="data: URI for inline images, remote URI for videos")
    mimeType: str | None = None

    @classmethod
    def inline_image(cls, data: bytes, mime_type: str = "image/png") -> Attachment:
        encoded = base64.b64encode(data).decode("ascii")
        return cls(kind=AttachmentKind.image, uri=f"data:{mime_type};base64,{encoded}", mimeType=mime_type)

    @classmethod
    def video(cls, uri: str) -> Attachment:
        return cls(kind=AttachmentKind.video, uri=uri, mimeType="video/mp4")

    def image_bytes(self) -> tuple[bytes, str] | None:
        """Decode an inline ``data:`` image into (bytes, mime type); None for remote URIs."""
        if self.kind is not AttachmentKind.image or not self.uri.startswith("data:"):
            return None
        header, _, payload = self.uri.partition(",")
        mime = header[len("data:") :].split(";")[0] or self.mimeType or "image/png"
        try:
            return base64.b64decode(payload, validate=True), mime
        except (binascii.Error, ValueError):
            return None


class QuizOption(BaseModel):
    label: str
    text: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display(self) -> str:
        return f"{self.label}) {self.text}"


class Message(BaseModel):
    speaker: Speaker
    body: str = ""
    attachment: Attachment | None = None
    presentation: Presentation = Presentation.plain
    options: list[QuizOption] = Field(default_factory=list, max_length=4)
    correctLabel: str | None = None
    closeLabel: str | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> Message:
        if self.presentation is Presentation.quiz:
            if not self.options:
                raise ValueError("quiz messages need at least one option")
            labels = {o.label for o in self.options}
            if self.correctLabel is not None and self.correctLabel not in labels:
                raise ValueError(f"correctLabel {self.correctLabel!r} is not among the options")
        elif self.options or self.correctLabel or self.closeLabel:
            raise ValueError("options and answer labels only belong on quiz messages")
        return self

    @property
    def labels(self) -> list[str]:
        return [o.label for o in self.options]


class QuizMode(str, Enum):
    short = "short"
    marathon = "marathon"


class QuizState(str, Enum):
    loading = "loading"
    active = "active"
    finished = "finished"
    empty = "empty"


class Outcome(str, Enum):
    correct = "correct"
    close = "close"
    incorrect = "incorrect"


# ── HTTP payloads ────────────────────────────────────────────


class ChatMessageRequest(BaseModel):
    sessionId: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    text: str = ""
    image: str | None = Field(None, description="Optional data: URI of a photo sent with the message")


class ChatHistoryResponse(BaseModel):
    sessionId: str
    subject: str
    messages: list[Message]


class ChatMessageResponse(ChatHistoryResponse):
    reply: Message | None = None


class QuizStartRequest(BaseModel):
    sessionId: str = Field(..., min_length=1)
    mode: QuizMode = QuizMode.short


class QuizAnswerRequest(BaseModel):
    sessionId: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1, max_length=1)


class QuizSnapshot(BaseModel):
    mode: QuizMode
    state: QuizState
    items: list[Message]
    cursor: int
    outcomes: dict[int, Outcome]
    score: float
    finalScore: int
    pendingSelection: str | None = None


class QuizAnswerResponse(BaseModel):
    outcome: Outcome | None
    quiz: QuizSnapshot


class StudyPlanRequest(BaseModel):
    topic: str = Field(..., min_length=1)


class StudyPlanResponse(BaseModel):
    topic: str
    text: str


class SpeechModality(str, Enum):
    capture = "capture"
    output = "output"


class SpeechUnsupportedRequest(BaseModel):
    sessionId: str = Field(..., min_length=1)
    modality: SpeechModality


class SpeechStatusResponse(BaseModel):
    sessionId: str
    enabled: list[SpeechModality]
