from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Protocol

from google import genai
from google.genai import types

from tutor.config import Settings, _env, load_settings
from tutor.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineImage:
    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class VideoOperation:
    handle: Any
    done: bool = False
    uri: str | None = None


class GenerativeBackend(Protocol):
    async def generate_text(
        self, prompt: str, *, image: InlineImage | None = None, grounding: bool = False
    ) -> str: ...

    async def generate_image(self, prompt: str, *, aspect_ratio: str = "1:1") -> InlineImage | None: ...

    async def start_video(
        self, prompt: str, *, resolution: str = "720p", aspect_ratio: str = "16:9"
    ) -> VideoOperation: ...

    async def poll_video(self, operation: VideoOperation) -> VideoOperation: ...


def _is_model_not_found(err: Exception) -> bool:
    msg = str(err)
    return (
        "NOT_FOUND" in msg
        and ("was not found" in msg or "not found" in msg or "is not found" in msg)
        and ("Publisher Model" in msg or "models/" in msg or "Call ListModels" in msg)
    )


class GeminiClient:
    """
    Supports two modes:
    - Vertex AI mode (recommended on Cloud Run): GOOGLE_CLOUD_PROJECT + GOOGLE_CLOUD_LOCATION
    - API key mode (local/dev): GOOGLE_API_KEY
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self.model = self.settings.text_model

        api_key = _env("GOOGLE_API_KEY")
        project = _env("GOOGLE_CLOUD_PROJECT")
        location = _env("GOOGLE_CLOUD_LOCATION", "us-central1")

        if api_key:
            self._api_key = api_key
            self.client = genai.Client(api_key=api_key)
        elif project:
            self._api_key = None
            # Uses ADC (service account) on Cloud Run
            self.client = genai.Client(vertexai=True, project=project, location=location)
        else:
            raise RuntimeError(
                "Missing config: set GOOGLE_API_KEY (local) or GOOGLE_CLOUD_PROJECT (+ optional GOOGLE_CLOUD_LOCATION) (Vertex/Cloud Run)."
            )

    async def _generate_content(self, models: list[str], contents: Any, config: types.GenerateContentConfig | None):
        last_err: Exception | None = None
        tried: set[str] = set()
        for m in models:
            if m in tried:
                continue
            tried.add(m)
            try:
                return await self.client.aio.models.generate_content(model=m, contents=contents, config=config)
            except Exception as e:
                last_err = e
                if _is_model_not_found(e):
                    logger.warning("Model %s unavailable, trying next candidate", m)
                    continue
                raise UpstreamUnavailable(f"generate_content failed on {m}: {e}") from e
        raise UpstreamUnavailable(f"All model candidates failed. Last error: {last_err}")

    async def generate_text(
        self, prompt: str, *, image: InlineImage | None = None, grounding: bool = False
    ) -> str:
        parts = [types.Part(text=prompt)]
        if image is not None:
            parts.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
        config = None
        if grounding:
            config = types.GenerateContentConfig(tools=[types.Tool(google_search=types.GoogleSearch())])

        candidates = [self.model, "gemini-2.5-flash", "gemini-2.0-flash"]
        resp = await self._generate_content(
            candidates, [types.Content(role="user", parts=parts)], config
        )
        return (resp.text or "").strip()

    async def generate_image(self, prompt: str, *, aspect_ratio: str = "1:1") -> InlineImage | None:
        resp = await self._generate_content(
            [self.settings.image_model],
            [types.Content(role="user", parts=[types.Part(text=prompt)])],
            types.GenerateContentConfig(image_config=types.ImageConfig(aspect_ratio=aspect_ratio)),
        )
        candidates = resp.candidates or []
        if not candidates or candidates[0].content is None:
            return None
        for part in candidates[0].content.parts or []:
            inline = part.inline_data
            if inline is not None and inline.data:
                return InlineImage(data=inline.data, mime_type=inline.mime_type or "image/png")
        return None

    async def start_video(
        self, prompt: str, *, resolution: str = "720p", aspect_ratio: str = "16:9"
    ) -> VideoOperation:
        try:
            operation = await self.client.aio.models.generate_videos(
                model=self.settings.video_model,
                prompt=prompt,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution=resolution,
                    aspect_ratio=aspect_ratio,
                ),
            )
        except Exception as e:
            raise UpstreamUnavailable(f"generate_videos failed: {e}") from e
        return self._wrap_operation(operation)

    async def poll_video(self, operation: VideoOperation) -> VideoOperation:
        try:
            refreshed = await self.client.aio.operations.get(operation.handle)
        except Exception as e:
            raise UpstreamUnavailable(f"video status call failed: {e}") from e
        return self._wrap_operation(refreshed)

    def _wrap_operation(self, operation: Any) -> VideoOperation:
        uri = None
        response = getattr(operation, "response", None)
        videos = getattr(response, "generated_videos", None) or []
        if videos and videos[0].video is not None:
            uri = videos[0].video.uri
        if uri and self._api_key:
            # Download links from the Gemini API need the key to be fetched by a browser.
            sep = "&" if "?" in uri else "?"
            uri = f"{uri}{sep}{urllib.parse.urlencode({'key': self._api_key})}"
        return VideoOperation(handle=operation, done=bool(operation.done), uri=uri)
