from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from texttomusic.app.settings import Settings
from texttomusic.generate import _run
from texttomusic.services.generator import MusicGenerator
from texttomusic.services.tagging import TagExtractor

from stubs import SIX_TAGS, UPSTREAM_URL, StubChatClient, StubReplicateClient


@pytest.fixture
def stub_clients(monkeypatch: pytest.MonkeyPatch) -> tuple[StubChatClient, StubReplicateClient]:
    chat = StubChatClient()
    music = StubReplicateClient()

    def _chat_client(self: TagExtractor) -> Any:
        return chat

    def _music_client(self: MusicGenerator) -> Any:
        return music

    monkeypatch.setattr(TagExtractor, "_ensure_client", _chat_client)
    monkeypatch.setattr(MusicGenerator, "_ensure_client", _music_client)
    return chat, music


@pytest.mark.asyncio
async def test_generate_cli_prints_result(
    stub_clients: tuple[StubChatClient, StubReplicateClient],
    make_settings: Callable[..., Settings],
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, music = stub_clients

    result = await _run(
        "calm modular arpeggios",
        lyrics="moonlight falls",
        duration=12,
        settings=make_settings(),
    )

    printed = json.loads(capsys.readouterr().out)
    assert printed == result
    assert printed["audioUrl"] == UPSTREAM_URL
    assert printed["tags"] == SIX_TAGS
    _, payload = music.calls[0]
    assert payload["duration"] == 12
    assert payload["lyrics"] == "[verse]moonlight falls[verse]"


@pytest.mark.asyncio
async def test_generate_cli_tags_only(
    stub_clients: tuple[StubChatClient, StubReplicateClient],
    make_settings: Callable[..., Settings],
    capsys: pytest.CaptureFixture[str],
) -> None:
    _, music = stub_clients

    await _run("upbeat dance", tags_only=True, settings=make_settings())

    printed = json.loads(capsys.readouterr().out)
    assert printed["tags"] == SIX_TAGS
    assert len(printed["extractedTags"]) == 6
    assert music.calls == []
