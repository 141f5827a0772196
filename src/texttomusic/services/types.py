"""Shared service data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ExtractionResult:
    prompt: str
    tags: str
    extracted_tags: List[str]
    unknown_tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GenerationOutcome:
    generation_id: str
    audio_url: str
    upstream_url: str
    tags: str
    proxied: bool


@dataclass(frozen=True)
class ProxiedAudio:
    body: bytes
    content_type: str
    headers: Dict[str, str]

    @property
    def content_length(self) -> int:
        return len(self.body)


@dataclass
class StoreStatus:
    name: str
    ready: bool
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"name": self.name, "ready": self.ready}
        if self.error is not None:
            payload["error"] = self.error
        return payload
