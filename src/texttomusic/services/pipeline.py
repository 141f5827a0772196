"""Coordinates tag extraction, generation, signing and best-effort persistence."""

from __future__ import annotations

import asyncio
from typing import Optional, Set

from loguru import logger

from ..app.models import GenerationRecord, GenerationStatus
from ..app.settings import Settings
from .exceptions import (
    ConfigError,
    GenerationError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamFailureKind,
    ValidationError,
)
from .generator import MusicGenerator
from .signing import UrlSigner, generate_secure_id
from .storage import AudioStorage
from .store import GenerationStore, record_best_effort
from .tagging import TagExtractor
from .types import ExtractionResult, GenerationOutcome

GENERATION_FAILED_MESSAGE = "Failed to generate music. Please try again."
UPSTREAM_AUTH_MESSAGE = "API authentication failed. Please check your API tokens."


class GenerationPipeline:
    """Runs one prompt through extraction and generation.

    The generation store and durable storage are optional collaborators:
    their failures are logged and never change the returned URL.
    """

    def __init__(
        self,
        settings: Settings,
        extractor: TagExtractor,
        generator: MusicGenerator,
        signer: UrlSigner,
        store: GenerationStore,
        storage: Optional[AudioStorage] = None,
    ) -> None:
        self._settings = settings
        self._extractor = extractor
        self._generator = generator
        self._signer = signer
        self._store = store
        self._storage = storage
        self._tasks: Set[asyncio.Task[None]] = set()

    @property
    def proxy_delivery(self) -> bool:
        return self._settings.proxy_delivery

    @property
    def storage(self) -> Optional[AudioStorage]:
        return self._storage

    async def generate(
        self,
        prompt: Optional[str],
        *,
        lyrics: Optional[str] = None,
        tags: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> GenerationOutcome:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt is required")

        generation_id = generate_secure_id()
        record = GenerationRecord(
            generation_id=generation_id,
            user_id=user_id,
            prompt=prompt,
            lyrics=lyrics or None,
            status=GenerationStatus.PROCESSING,
        )
        await record_best_effort(self._store, record)

        try:
            extraction = await self._resolve_tags(prompt, tags)
            upstream_url = await self._generator.generate(extraction.tags, lyrics)
        except ValidationError as exc:
            await self._mark_failed(record, exc.message)
            raise
        except UpstreamError as exc:
            await self._mark_failed(record, exc.message)
            logger.error(
                "generation {} failed upstream ({}, {}): {}",
                generation_id,
                exc.service,
                exc.kind.value,
                exc.message,
            )
            if exc.kind == UpstreamFailureKind.UNAUTHORIZED:
                raise UpstreamAuthError(UPSTREAM_AUTH_MESSAGE, details=exc.message) from exc
            raise GenerationError(GENERATION_FAILED_MESSAGE, details=exc.message) from exc
        except ConfigError as exc:
            await self._mark_failed(record, exc.message)
            raise GenerationError(GENERATION_FAILED_MESSAGE, details=exc.message) from exc
        except Exception as exc:  # noqa: BLE001
            await self._mark_failed(record, str(exc))
            logger.exception("unexpected error during generation {}", generation_id)
            raise GenerationError(GENERATION_FAILED_MESSAGE, details=str(exc)) from exc

        completed = record.transition(
            GenerationStatus.COMPLETED,
            tags=extraction.tags,
            upstream_url=upstream_url,
            audio_url=upstream_url,
        )
        recorded = await record_best_effort(self._store, completed)
        if self._storage is not None:
            self._schedule_copy(completed)

        # Signed paths resolve through the store; an unrecorded id is unplayable.
        proxied = self.proxy_delivery and recorded
        if self.proxy_delivery and not recorded:
            logger.warning(
                "generation {} not recorded, returning upstream URL instead of a signed path",
                generation_id,
            )
        audio_url = (
            self._signer.signed_path(upstream_url, generation_id) if proxied else upstream_url
        )
        logger.info(
            "generation {} completed (tags={!r}, proxied={})",
            generation_id,
            extraction.tags,
            proxied,
        )
        return GenerationOutcome(
            generation_id=generation_id,
            audio_url=audio_url,
            upstream_url=upstream_url,
            tags=extraction.tags,
            proxied=proxied,
        )

    async def drain(self) -> None:
        """Wait for outstanding storage copies."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _resolve_tags(self, prompt: str, tags: Optional[str]) -> ExtractionResult:
        if tags and tags.strip():
            return self._extractor.validate(prompt, tags.strip())
        return await self._extractor.extract(prompt)

    async def _mark_failed(self, record: GenerationRecord, message: str) -> None:
        await record_best_effort(
            self._store, record.transition(GenerationStatus.FAILED, error=message)
        )

    def _schedule_copy(self, record: GenerationRecord) -> None:
        task = asyncio.create_task(self._copy_to_storage(record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _copy_to_storage(self, record: GenerationRecord) -> None:
        assert self._storage is not None
        assert record.upstream_url is not None
        try:
            durable_url = await self._storage.upload(record.upstream_url, record.generation_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "{} upload failed for {}, continuing without backup: {}",
                self._storage.name,
                record.generation_id,
                exc,
            )
            return
        await record_best_effort(
            self._store,
            record.transition(GenerationStatus.COMPLETED, audio_url=durable_url),
        )
