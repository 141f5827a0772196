from __future__ import annotations

from typing import Any, Callable

import pytest

from texttomusic.app.settings import Settings

ENV_NAMES = (
    "OPENAI_API_KEY",
    "REPLICATE_API_TOKEN",
    "URL_HASH_SECRET",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "S3_BUCKET_NAME",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def _clear_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"TEXTTOMUSIC_{name}", raising=False)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "openai_api_key": "sk-test",
            "replicate_api_token": "r8-test",
            "url_hash_secret": "test-secret",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _factory
