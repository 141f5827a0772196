from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from ..services.exceptions import StorageError, TextToMusicError
from ..services.generator import MusicGenerator
from ..services.pipeline import GenerationPipeline
from ..services.proxy import AudioProxy
from ..services.ratelimit import RateLimiter
from ..services.signing import UrlSigner
from ..services.storage import AudioStorage, S3AudioStorage
from ..services.store import GenerationStore, InMemoryGenerationStore, MongoGenerationStore
from ..services.tagging import TagExtractor
from ..services.vocabulary import load_vocabulary
from .logging import configure_logging
from .routes import router
from .settings import Settings, get_settings


def build_store(settings: Settings) -> GenerationStore:
    if settings.database_url:
        return MongoGenerationStore(settings.database_url, database_name=settings.database_name)
    return InMemoryGenerationStore()


def build_storage(settings: Settings) -> Optional[AudioStorage]:
    if not settings.storage_configured:
        return None
    try:
        return S3AudioStorage(settings)
    except StorageError as exc:
        logger.warning("S3 storage disabled: {}", exc)
        return None


def create_app(
    settings: Optional[Settings] = None,
    *,
    extractor: Optional[TagExtractor] = None,
    generator: Optional[MusicGenerator] = None,
    store: Optional[GenerationStore] = None,
    storage: Optional[AudioStorage] = None,
    rate_limiter: Optional[RateLimiter] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Create and configure FastAPI instance."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    if settings.insecure_hash_secret:
        logger.warning(
            "URL_HASH_SECRET is not set; signed audio paths use the built-in "
            "development secret and are forgeable. Set it before deploying."
        )

    vocabulary = load_vocabulary(settings.tags_path)
    if extractor is None:
        extractor = TagExtractor(settings, vocabulary)
    if generator is None:
        generator = MusicGenerator(settings)
    if store is None:
        store = build_store(settings)
    if storage is None:
        storage = build_storage(settings)
    if rate_limiter is None:
        rate_limiter = RateLimiter()
    signer = UrlSigner(settings.url_hash_secret.get_secret_value())
    pipeline = GenerationPipeline(settings, extractor, generator, signer, store, storage)
    audio_proxy = AudioProxy(
        rate_limiter,
        signer,
        store,
        max_requests=settings.audio_rate_limit,
        window_ms=settings.audio_rate_window_ms,
        cache_max_age=settings.audio_cache_max_age,
        timeout_seconds=settings.audio_fetch_timeout_seconds,
        http_client=http_client,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "texttomusic ready: store={} storage={} delivery={}",
            store.name,
            storage.name if storage is not None else "none",
            "proxy" if pipeline.proxy_delivery else "direct",
        )
        yield
        await pipeline.drain()

    app = FastAPI(title="Text to Music API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.vocabulary = vocabulary
    app.state.extractor = extractor
    app.state.generator = generator
    app.state.store = store
    app.state.signer = signer
    app.state.rate_limiter = rate_limiter
    app.state.pipeline = pipeline
    app.state.audio_proxy = audio_proxy

    @app.exception_handler(TextToMusicError)
    async def _service_error(request: Request, exc: TextToMusicError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.as_payload())

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": str(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error on {} {}", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(router)
    return app


app = create_app()
