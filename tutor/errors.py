"""Failure modes of the tutoring engine.

The dispatch boundary catches ``UpstreamUnavailable`` and ``MediaGenerationFailed``
(timeouts included) and turns them into a fallback tutor message; the rest surface
to the HTTP layer.
"""

from __future__ import annotations


class TutorError(Exception):
    """Base class for tutoring engine errors."""


class UpstreamUnavailable(TutorError):
    """A generation call raised or was rejected by the provider."""


class MalformedResponse(TutorError):
    """The model answered, but not in a shape a quiz context can use."""


class MediaGenerationFailed(TutorError):
    """An image or video job finished without a payload or URI."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(f"{kind} generation failed: {message}")


class MediaGenerationTimeout(MediaGenerationFailed):
    """A video job was still running when the polling deadline passed."""

    def __init__(self, kind: str, elapsed: float) -> None:
        self.elapsed = elapsed
        super().__init__(kind, f"still running after {elapsed:.1f}s")


class UnsupportedCapability(TutorError):
    """A speech modality is not available in the learner's runtime."""

    def __init__(self, modality: str) -> None:
        self.modality = modality
        super().__init__(f"speech {modality} is not supported here")


class SessionBusy(TutorError):
    """A dispatch was attempted while a previous one is still outstanding."""
