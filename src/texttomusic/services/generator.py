"""Music generation backed by a Replicate-hosted model."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import replicate
from loguru import logger
from replicate.exceptions import ModelError, ReplicateError

from ..app.settings import Settings
from .exceptions import ConfigError, UpstreamError, UpstreamFailureKind

SERVICE_NAME = "replicate"
INSTRUMENTAL_MARKER = "[inst]"
VERSE_DELIMITER = "[verse]"


def format_lyrics(lyrics: Optional[str]) -> str:
    """Wrap lyrics as a verse block, or mark the track instrumental."""
    if lyrics and lyrics.strip():
        return f"{VERSE_DELIMITER}{lyrics}{VERSE_DELIMITER}"
    return INSTRUMENTAL_MARKER


def classify_replicate_error(exc: Exception) -> UpstreamError:
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, httpx.TransportError):
        return UpstreamError(UpstreamFailureKind.TRANSPORT, message, service=SERVICE_NAME)
    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamError.from_status(
            exc.response.status_code, message, service=SERVICE_NAME
        )
    if isinstance(exc, ReplicateError):
        status = getattr(exc, "status", None)
        return UpstreamError.from_status(status, message, service=SERVICE_NAME)
    return UpstreamError(UpstreamFailureKind.UNKNOWN, message, service=SERVICE_NAME)


def audio_url_from_output(output: Any) -> str:
    """Reduce a model output (URL, file handle or list of either) to one URL."""
    if isinstance(output, (list, tuple)):
        if not output:
            raise UpstreamError(
                UpstreamFailureKind.UNKNOWN,
                "music model returned no output",
                service=SERVICE_NAME,
            )
        output = output[0]
    if output is None:
        raise UpstreamError(
            UpstreamFailureKind.UNKNOWN,
            "music model returned no output",
            service=SERVICE_NAME,
        )
    url = getattr(output, "url", None)
    if not isinstance(url, str):
        url = str(output)
    if not url.startswith(("http://", "https://")):
        raise UpstreamError(
            UpstreamFailureKind.UNKNOWN,
            f"music model returned an unexpected output: {url[:120]}",
            service=SERVICE_NAME,
        )
    return url


class MusicGenerator:
    """Runs the generative-audio model and returns a playable URL.

    The call blocks until the remote prediction finishes. There is no retry:
    a half-finished prediction cannot be resumed without a remote job id.
    """

    def __init__(self, settings: Settings, *, client: Optional[Any] = None) -> None:
        self._settings = settings
        self._client = client
        self._model = settings.replicate_model
        self._duration = settings.generation_duration_seconds

    @property
    def configured(self) -> bool:
        return self._client is not None or self._settings.replicate_api_token is not None

    def build_input(self, tags: str, lyrics: Optional[str] = None) -> dict[str, Any]:
        return {
            "tags": tags,
            "lyrics": format_lyrics(lyrics),
            "duration": self._duration,
        }

    async def generate(self, tags: str, lyrics: Optional[str] = None) -> str:
        client = self._ensure_client()
        payload = self.build_input(tags, lyrics)
        logger.info(
            "Running {} with tags={!r} instrumental={}",
            self._model,
            tags,
            payload["lyrics"] == INSTRUMENTAL_MARKER,
        )
        try:
            output = await client.async_run(self._model, input=payload)
        except (ReplicateError, ModelError, httpx.HTTPError) as exc:
            raise classify_replicate_error(exc) from exc
        return audio_url_from_output(output)

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        token = self._settings.replicate_api_token
        if token is None:
            raise ConfigError("Replicate API token not configured")
        self._client = replicate.Client(api_token=token.get_secret_value())
        return self._client
