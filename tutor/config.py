from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env(name: str, default: str | None = None) -> str | None:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    return val


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw is not None else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw is not None else default


SHORT_QUIZ_ITEMS = 5
MARATHON_QUIZ_ITEMS = 100

SUBJECTS: tuple[str, ...] = (
    "Matematik",
    "Fen Bilimleri",
    "Türkçe",
    "İnkılap Tarihi",
    "İngilizce",
    "Biyoloji",
    "Tarih",
)


@dataclass(frozen=True)
class Settings:
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    video_model: str = "veo-3.1-fast-generate-preview"

    video_poll_interval: float = 5.0
    video_poll_backoff: float = 1.5
    video_poll_max_interval: float = 30.0
    video_timeout: float = 600.0
    video_max_status_errors: int = 3

    quiz_feedback_delay: float = 1.5

    session_ttl_seconds: int = 60 * 60
    session_max: int = 10_000


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def load_settings() -> Settings:
    return Settings(
        text_model=_env("GEMINI_MODEL", Settings.text_model),
        image_model=_env("GEMINI_IMAGE_MODEL", Settings.image_model),
        video_model=_env("GEMINI_VIDEO_MODEL", Settings.video_model),
        video_poll_interval=_env_float("VIDEO_POLL_INTERVAL", Settings.video_poll_interval),
        video_poll_backoff=_env_float("VIDEO_POLL_BACKOFF", Settings.video_poll_backoff),
        video_poll_max_interval=_env_float("VIDEO_POLL_MAX_INTERVAL", Settings.video_poll_max_interval),
        video_timeout=_env_float("VIDEO_TIMEOUT", Settings.video_timeout),
        video_max_status_errors=_env_int("VIDEO_MAX_STATUS_ERRORS", Settings.video_max_status_errors),
        quiz_feedback_delay=_env_float("QUIZ_FEEDBACK_DELAY", Settings.quiz_feedback_delay),
        session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", Settings.session_ttl_seconds),
        session_max=_env_int("SESSION_MAX", Settings.session_max),
    )
