from __future__ import annotations

from typing import Optional, cast

from fastapi import APIRouter, Query, Request, Response

from ..services.exceptions import (
    AuthError,
    NotFoundError,
    RateLimitError,
    TextToMusicError,
    UpstreamError,
    ValidationError,
)
from ..services.generator import MusicGenerator
from ..services.pipeline import GenerationPipeline
from ..services.proxy import AudioProxy
from ..services.ratelimit import RateLimiter
from ..services.signing import UrlSigner
from ..services.store import GenerationStore
from ..services.tagging import TagExtractor
from .models import (
    ExtractTagsRequest,
    ExtractTagsResponse,
    GenerateMusicRequest,
    GenerateMusicResponse,
    GenerationDetail,
    GenerationList,
    GenerationRecord,
    GenerationStatus,
    GenerationSummary,
    PublicGeneration,
)
from .settings import Settings

router = APIRouter()


def get_settings_state(request: Request) -> Settings:
    return cast(Settings, request.app.state.settings)


def get_pipeline(request: Request) -> GenerationPipeline:
    return cast(GenerationPipeline, request.app.state.pipeline)


def get_store(request: Request) -> GenerationStore:
    return cast(GenerationStore, request.app.state.store)


def get_signer(request: Request) -> UrlSigner:
    return cast(UrlSigner, request.app.state.signer)


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or "unknown"


def current_user(request: Request) -> str:
    """User id asserted by the auth provider in front of this service."""
    header = get_settings_state(request).auth_user_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise AuthError("Unauthorized")
    return user_id


def playable_url(record: GenerationRecord, signer: UrlSigner) -> Optional[str]:
    if record.status != GenerationStatus.COMPLETED or not record.upstream_url:
        return None
    return signer.signed_path(record.upstream_url, record.generation_id)


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    settings = get_settings_state(request)
    store_status = await get_store(request).status()
    pipeline = get_pipeline(request)
    extractor = cast(TagExtractor, request.app.state.extractor)
    generator = cast(MusicGenerator, request.app.state.generator)
    return {
        "status": "ok",
        "tag_model": settings.openai_model,
        "music_model": settings.replicate_model,
        "tag_extraction_configured": extractor.configured,
        "music_generation_configured": generator.configured,
        "storage_configured": pipeline.storage is not None,
        "audio_delivery": "proxy" if pipeline.proxy_delivery else "direct",
        "insecure_hash_secret": settings.insecure_hash_secret,
        "store": store_status.as_dict(),
    }


@router.post("/api/extract-tags", response_model=ExtractTagsResponse)
async def extract_tags(payload: ExtractTagsRequest, request: Request) -> ExtractTagsResponse:
    if not payload.prompt or not payload.prompt.strip():
        raise ValidationError("Prompt is required")
    extractor = cast(TagExtractor, request.app.state.extractor)
    try:
        result = await extractor.extract(payload.prompt)
    except UpstreamError as exc:
        raise TextToMusicError("Failed to extract tags", details=exc.message) from exc
    return ExtractTagsResponse(
        prompt=result.prompt,
        tags=result.tags,
        extracted_tags=result.extracted_tags,
    )


@router.post("/api/generate-music", response_model=GenerateMusicResponse)
async def generate_music(
    payload: GenerateMusicRequest, request: Request
) -> GenerateMusicResponse:
    settings = get_settings_state(request)
    limiter = cast(RateLimiter, request.app.state.rate_limiter)
    if not limiter.allow(
        f"music_{client_key(request)}",
        settings.music_rate_limit,
        settings.music_rate_window_ms,
    ):
        raise RateLimitError("Rate limit exceeded. Please wait before generating more music.")
    if not payload.prompt or not payload.prompt.strip():
        raise ValidationError("Prompt is required")

    user_id = (request.headers.get(settings.auth_user_header) or "").strip() or None
    outcome = await get_pipeline(request).generate(
        payload.prompt,
        lyrics=payload.lyrics,
        tags=payload.tags,
        user_id=user_id,
    )
    return GenerateMusicResponse(
        generation_id=outcome.generation_id,
        audio_url=outcome.audio_url,
    )


@router.get("/api/audio/{generation_id}/{token}")
async def audio(generation_id: str, token: str, request: Request) -> Response:
    proxy = cast(AudioProxy, request.app.state.audio_proxy)
    result = await proxy.fetch_audio(generation_id, token, client_key(request))
    return Response(
        content=result.body,
        status_code=200,
        media_type=result.content_type,
        headers=result.headers,
    )


@router.get("/api/generations", response_model=GenerationList)
async def list_generations(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    status: Optional[GenerationStatus] = Query(default=None),
) -> GenerationList:
    user_id = current_user(request)
    signer = get_signer(request)
    records, total = await get_store(request).list_for_user(
        user_id, limit=limit, offset=offset, status=status
    )
    summaries = [
        GenerationSummary(
            generation_id=record.generation_id,
            prompt=record.prompt,
            tags=record.tags,
            status=record.status,
            audio_url=playable_url(record, signer),
            created_at=record.created_at,
        )
        for record in records
    ]
    return GenerationList(generations=summaries, total=total, limit=limit, offset=offset)


@router.get("/api/generations/{generation_id}", response_model=GenerationDetail)
async def generation_detail(generation_id: str, request: Request) -> GenerationDetail:
    user_id = current_user(request)
    record = await get_store(request).get(generation_id)
    if record is None or record.user_id != user_id:
        raise NotFoundError("Generation not found")
    return GenerationDetail(
        generation_id=record.generation_id,
        user_id=record.user_id,
        status=record.status,
        success=record.status == GenerationStatus.COMPLETED,
        prompt=record.prompt,
        tags=record.tags,
        lyrics=record.lyrics,
        generated_audio_url=playable_url(record, get_signer(request)),
        error=record.error,
        timestamp=record.created_at.isoformat(),
        created_at=record.created_at,
        updated_at=record.updated_at,
        completed_at=record.completed_at,
    )


@router.get("/api/generations/{generation_id}/public", response_model=PublicGeneration)
async def public_generation(generation_id: str, request: Request) -> PublicGeneration:
    record = await get_store(request).get(generation_id)
    if record is None:
        raise NotFoundError("Generation not found")
    return PublicGeneration(
        generation_id=record.generation_id,
        status=record.status,
        prompt=record.prompt,
        tags=record.tags,
        generated_audio_url=playable_url(record, get_signer(request)),
        created_at=record.created_at,
    )
