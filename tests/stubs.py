"""Stand-ins for the OpenAI and Replicate clients used across tests."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Optional

UPSTREAM_URL = "https://replicate.delivery/pbxt/abc123/output.wav"
SIX_TAGS = "electronic, dance, uplifting, synthesizer, female, bright vocal"


class StubChatClient:
    """Mimics ``AsyncOpenAI().chat.completions.create``."""

    def __init__(self, reply: Optional[str] = SIX_TAGS, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class StubReplicateClient:
    """Mimics ``replicate.Client.async_run``."""

    def __init__(self, output: Any = UPSTREAM_URL, error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def async_run(self, model: str, input: dict[str, Any]) -> Any:  # noqa: A002
        self.calls.append((model, input))
        if self.error is not None:
            raise self.error
        return self.output
