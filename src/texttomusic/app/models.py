from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerationStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class GenerationRecord(BaseModel):
    generation_id: str = Field(..., min_length=1, max_length=64)
    user_id: Optional[str] = Field(default=None, max_length=128)
    prompt: str
    tags: Optional[str] = None
    lyrics: Optional[str] = None
    audio_url: Optional[str] = None
    upstream_url: Optional[str] = None
    status: GenerationStatus = GenerationStatus.PENDING
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    completed_at: Optional[datetime] = None

    def transition(self, status: GenerationStatus, **changes: Any) -> "GenerationRecord":
        now = _utc_now()
        update: dict[str, Any] = {"status": status, "updated_at": now, **changes}
        if status == GenerationStatus.COMPLETED and self.completed_at is None:
            update.setdefault("completed_at", now)
        return self.model_copy(update=update, deep=True)


class ExtractTagsRequest(BaseModel):
    prompt: Optional[str] = None


class ExtractTagsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    tags: str
    extracted_tags: list[str] = Field(..., alias="extractedTags")


class GenerateMusicRequest(BaseModel):
    prompt: Optional[str] = None
    lyrics: Optional[str] = None
    tags: Optional[str] = Field(
        default=None,
        description="Comma-separated tags from a prior extract-tags call.",
    )


class GenerateMusicResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    generation_id: str = Field(..., alias="generationId")
    audio_url: str = Field(..., alias="audioUrl")
    message: str = "Music generated successfully!"


class GenerationSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generation_id: str = Field(..., alias="generationId")
    prompt: str
    tags: Optional[str] = None
    status: GenerationStatus
    audio_url: Optional[str] = Field(default=None, alias="audioUrl")
    created_at: datetime = Field(..., alias="createdAt")


class GenerationList(BaseModel):
    generations: list[GenerationSummary] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int


class GenerationDetail(BaseModel):
    generation_id: str
    user_id: Optional[str] = None
    status: GenerationStatus
    success: bool
    prompt: str
    tags: Optional[str] = None
    lyrics: Optional[str] = None
    generated_audio_url: Optional[str] = None
    error: Optional[str] = None
    timestamp: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class PublicGeneration(BaseModel):
    generation_id: str
    status: GenerationStatus
    prompt: str
    tags: Optional[str] = None
    generated_audio_url: Optional[str] = None
    created_at: datetime
