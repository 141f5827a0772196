"""Optional durable copy of generated audio into S3."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, Protocol

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from ..app.settings import Settings
from .exceptions import StorageError

KEY_PREFIX = "music-generations"


class AudioStorage(Protocol):
    name: str

    async def upload(self, audio_url: str, generation_id: str) -> str: ...


class S3AudioStorage:
    """Downloads an upstream artifact and stores it in a private bucket."""

    name = "s3"

    def __init__(
        self,
        settings: Settings,
        *,
        s3_client: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not settings.storage_configured and s3_client is None:
            raise StorageError("S3 storage is not configured")
        self._bucket = settings.s3_bucket_name or ""
        self._region = settings.aws_region
        self._timeout = settings.audio_fetch_timeout_seconds
        self._http_client = http_client
        if s3_client is None:
            assert settings.aws_access_key_id is not None
            assert settings.aws_secret_access_key is not None
            s3_client = boto3.client(
                "s3",
                region_name=self._region,
                aws_access_key_id=settings.aws_access_key_id.get_secret_value(),
                aws_secret_access_key=settings.aws_secret_access_key.get_secret_value(),
            )
        self._s3 = s3_client

    def object_key(self, generation_id: str) -> str:
        return f"{KEY_PREFIX}/{int(time.time() * 1000)}-{generation_id}.wav"

    def object_url(self, key: str) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    async def upload(self, audio_url: str, generation_id: str) -> str:
        body = await self._download(audio_url)
        key = self.object_key(generation_id)
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType="audio/wav",
                ContentDisposition="inline",
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload audio to S3: {exc}") from exc
        return self.object_url(key)

    async def _download(self, audio_url: str) -> bytes:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(audio_url)
            else:
                async with httpx.AsyncClient(
                    timeout=self._timeout, follow_redirects=True
                ) as client:
                    response = await client.get(audio_url)
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to fetch audio file: {exc}") from exc
        if response.status_code >= 400:
            raise StorageError(f"Failed to fetch audio file: HTTP {response.status_code}")
        return response.content
