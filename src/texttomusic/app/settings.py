from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HASH_SECRET = "fallback-secret-key-change-in-production"
DEFAULT_REPLICATE_MODEL = (
    "lucataco/ace-step:280fc4f9ee507577f880a167f639c02622421d8fecf492454320311217b688f1"
)


class Settings(BaseSettings):
    """Runtime configuration for the text-to-music API process."""

    model_config = SettingsConfigDict(
        env_prefix="TEXTTOMUSIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(default="INFO", max_length=16)

    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("TEXTTOMUSIC_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = Field(default="gpt-3.5-turbo", max_length=64)
    tag_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for tag extraction; kept low for reproducibility.",
    )
    tag_max_tokens: int = Field(default=100, ge=16, le=1024)
    tags_path: Path | None = Field(
        default=None,
        description="Override the bundled tag vocabulary JSON document.",
    )

    replicate_api_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "TEXTTOMUSIC_REPLICATE_API_TOKEN", "REPLICATE_API_TOKEN"
        ),
    )
    replicate_model: str = Field(default=DEFAULT_REPLICATE_MODEL, max_length=256)
    generation_duration_seconds: int = Field(default=20, ge=1, le=240)

    url_hash_secret: SecretStr = Field(
        default=SecretStr(DEFAULT_HASH_SECRET),
        validation_alias=AliasChoices("TEXTTOMUSIC_URL_HASH_SECRET", "URL_HASH_SECRET"),
        description="HMAC key for signed audio paths. The default is unsafe outside development.",
    )
    audio_delivery: Literal["auto", "proxy", "direct"] = Field(
        default="auto",
        description="Whether generate-music returns the signed proxy path or the upstream URL.",
    )

    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("TEXTTOMUSIC_AWS_REGION", "AWS_REGION"),
    )
    aws_access_key_id: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("TEXTTOMUSIC_AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    )
    aws_secret_access_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "TEXTTOMUSIC_AWS_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"
        ),
    )
    s3_bucket_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TEXTTOMUSIC_S3_BUCKET_NAME", "S3_BUCKET_NAME"),
    )

    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TEXTTOMUSIC_DATABASE_URL", "DATABASE_URL"),
    )
    database_name: str = Field(default="texttomusic", max_length=64)

    audio_rate_limit: int = Field(default=20, ge=1)
    audio_rate_window_ms: int = Field(default=60_000, ge=1)
    music_rate_limit: int = Field(default=5, ge=1)
    music_rate_window_ms: int = Field(default=300_000, ge=1)
    audio_fetch_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    audio_cache_max_age: int = Field(default=3600, ge=0)

    auth_user_header: str = Field(
        default="X-User-Id",
        max_length=64,
        description="Header carrying the user id asserted by the fronting auth provider.",
    )

    @model_validator(mode="after")
    def _blank_credentials_are_missing(self) -> "Settings":
        for name in (
            "openai_api_key",
            "replicate_api_token",
            "aws_access_key_id",
            "aws_secret_access_key",
        ):
            value = getattr(self, name)
            if value is not None and not value.get_secret_value().strip():
                setattr(self, name, None)
        if self.s3_bucket_name is not None and not self.s3_bucket_name.strip():
            self.s3_bucket_name = None
        if not self.url_hash_secret.get_secret_value():
            self.url_hash_secret = SecretStr(DEFAULT_HASH_SECRET)
        return self

    @property
    def insecure_hash_secret(self) -> bool:
        return self.url_hash_secret.get_secret_value() == DEFAULT_HASH_SECRET

    @property
    def storage_configured(self) -> bool:
        return (
            self.aws_access_key_id is not None
            and self.aws_secret_access_key is not None
            and self.s3_bucket_name is not None
        )

    @property
    def proxy_delivery(self) -> bool:
        if self.audio_delivery == "auto":
            return self.storage_configured
        return self.audio_delivery == "proxy"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
