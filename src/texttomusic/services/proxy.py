"""Serves upstream audio behind signed, rate-limited paths."""

from __future__ import annotations

from typing import Dict, Optional

import httpx
from loguru import logger

from ..app.models import GenerationStatus
from .exceptions import ForbiddenError, NotFoundError, RateLimitError
from .ratelimit import RateLimiter
from .signing import UrlSigner
from .store import GenerationStore
from .types import ProxiedAudio

AUDIO_CONTENT_TYPE = "audio/mpeg"
SECURITY_HEADERS: Dict[str, str] = {
    "Accept-Ranges": "bytes",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


class AudioProxy:
    """Resolves ``(generation_id, token)`` to upstream audio bytes.

    The stages run in order (rate check, record lookup, token check, upstream
    fetch) and any of them ends the request. Incomplete, unknown and
    unreachable audio all look the same to the caller.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        signer: UrlSigner,
        store: GenerationStore,
        *,
        max_requests: int = 20,
        window_ms: int = 60_000,
        cache_max_age: int = 3600,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._limiter = limiter
        self._signer = signer
        self._store = store
        self._max_requests = max_requests
        self._window_ms = window_ms
        self._cache_max_age = cache_max_age
        self._timeout = timeout_seconds
        self._http_client = http_client

    async def fetch_audio(
        self, generation_id: str, token: str, client_key: str
    ) -> ProxiedAudio:
        if not self._limiter.allow(f"audio_{client_key}", self._max_requests, self._window_ms):
            raise RateLimitError("Rate limit exceeded")

        record = await self._store.get(generation_id)
        if (
            record is None
            or record.status != GenerationStatus.COMPLETED
            or not record.upstream_url
        ):
            raise NotFoundError("Audio not found")

        if not self._signer.verify(record.upstream_url, generation_id, token):
            logger.warning("rejected audio token for {} from {}", generation_id, client_key)
            raise ForbiddenError("Invalid access token")

        body = await self._fetch_upstream(record.upstream_url, generation_id)
        headers = {
            "Content-Type": AUDIO_CONTENT_TYPE,
            "Content-Length": str(len(body)),
            "Cache-Control": f"public, max-age={self._cache_max_age}",
            **SECURITY_HEADERS,
        }
        return ProxiedAudio(body=body, content_type=AUDIO_CONTENT_TYPE, headers=headers)

    async def _fetch_upstream(self, url: str, generation_id: str) -> bytes:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=self._timeout, follow_redirects=True
                ) as client:
                    response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("upstream audio fetch failed for {}: {}", generation_id, exc)
            raise NotFoundError("Audio file not accessible") from exc
        if not response.is_success:
            logger.warning(
                "upstream audio for {} returned HTTP {}", generation_id, response.status_code
            )
            raise NotFoundError("Audio file not accessible")
        return response.content
