"""Canonical music tag vocabulary used to constrain tag extraction."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Tuple

DEFAULT_TAGS_PATH = Path(__file__).resolve().parent.parent / "data" / "tags.json"

# Document key -> category name.
CATEGORY_KEYS = (
    ("genres", "genre"),
    ("instruments", "instrument"),
    ("moods", "mood"),
    ("gender", "gender"),
    ("timbre", "timbre"),
)


@dataclass(frozen=True)
class TagVocabulary:
    genres: Tuple[str, ...]
    instruments: Tuple[str, ...]
    moods: Tuple[str, ...]
    gender: Tuple[str, ...]
    timbre: Tuple[str, ...]

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Iterable[str]]) -> "TagVocabulary":
        missing = [key for key, _ in CATEGORY_KEYS if key not in payload]
        if missing:
            raise ValueError(f"tag vocabulary missing categories: {', '.join(missing)}")
        values = {key: tuple(str(tag) for tag in payload[key]) for key, _ in CATEGORY_KEYS}
        return cls(**values)

    def categories(self) -> dict[str, Tuple[str, ...]]:
        return {name: getattr(self, key) for key, name in CATEGORY_KEYS}

    def category_of(self, tag: str) -> Optional[str]:
        for key, name in CATEGORY_KEYS:
            if tag in getattr(self, key):
                return name
        return None

    def unknown(self, tags: Iterable[str]) -> list[str]:
        return [tag for tag in tags if self.category_of(tag) is None]


def load_vocabulary(path: Optional[Path] = None) -> TagVocabulary:
    source = path or DEFAULT_TAGS_PATH
    with source.open("r", encoding="utf-8") as handle:
        document = json.load(handle)
    payload = document.get("yue_tags", document) if isinstance(document, dict) else None
    if not isinstance(payload, dict):
        raise ValueError(f"tag vocabulary at {source} is not a JSON object")
    return TagVocabulary.from_mapping(payload)
