from __future__ import annotations

import re
from typing import Any, Callable, Dict, List

import httpx
import pytest
from botocore.exceptions import ClientError

from texttomusic.app.settings import Settings
from texttomusic.services.exceptions import StorageError
from texttomusic.services.storage import S3AudioStorage

from stubs import UPSTREAM_URL


class FakeS3:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.puts: List[Dict[str, Any]] = []

    def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        if self.fail:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.puts.append(kwargs)
        return {}


def _http(status: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=b"RIFFwave")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def storage_settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings(
        aws_access_key_id="AKIA",
        aws_secret_access_key="secret",
        s3_bucket_name="songs",
        aws_region="eu-west-1",
    )


@pytest.mark.asyncio
async def test_upload_stores_private_wav(storage_settings: Settings) -> None:
    s3 = FakeS3()
    storage = S3AudioStorage(storage_settings, s3_client=s3, http_client=_http())

    url = await storage.upload(UPSTREAM_URL, "abc")

    put = s3.puts[0]
    assert put["Bucket"] == "songs"
    assert put["Body"] == b"RIFFwave"
    assert put["ContentType"] == "audio/wav"
    assert put["ContentDisposition"] == "inline"
    assert re.fullmatch(r"music-generations/\d+-abc\.wav", put["Key"])
    assert url == f"https://songs.s3.eu-west-1.amazonaws.com/{put['Key']}"


@pytest.mark.asyncio
async def test_download_failure_raises_storage_error(storage_settings: Settings) -> None:
    storage = S3AudioStorage(storage_settings, s3_client=FakeS3(), http_client=_http(404))
    with pytest.raises(StorageError, match="Failed to fetch audio file"):
        await storage.upload(UPSTREAM_URL, "abc")


@pytest.mark.asyncio
async def test_put_failure_raises_storage_error(storage_settings: Settings) -> None:
    storage = S3AudioStorage(storage_settings, s3_client=FakeS3(fail=True), http_client=_http())
    with pytest.raises(StorageError, match="Failed to upload audio to S3"):
        await storage.upload(UPSTREAM_URL, "abc")


def test_unconfigured_storage_rejected(make_settings: Callable[..., Settings]) -> None:
    with pytest.raises(StorageError):
        S3AudioStorage(make_settings())
