from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from tutor.schemas import Attachment

IMAGE_PREFIX = "/resim "
VIDEO_PREFIX = "/video "


@dataclass(frozen=True)
class PlainTutorRequest:
    text: str
    attachment: Attachment | None = None


@dataclass(frozen=True)
class ImageJobRequest:
    prompt: str


@dataclass(frozen=True)
class VideoJobRequest:
    prompt: str


Action = Union[PlainTutorRequest, ImageJobRequest, VideoJobRequest]


def dispatch(user_text: str, attachment: Attachment | None = None) -> Action:
    """Route learner input by exact, case-sensitive prefix; image is checked before video."""
    if user_text.startswith(IMAGE_PREFIX):
        return ImageJobRequest(prompt=user_text[len(IMAGE_PREFIX) :])
    if user_text.startswith(VIDEO_PREFIX):
        return VideoJobRequest(prompt=user_text[len(VIDEO_PREFIX) :])
    return PlainTutorRequest(text=user_text, attachment=attachment)
