"""
CLI entry point to run a one-off prompt through tag extraction and generation.

Example:
    python -m texttomusic.generate --prompt "quiet ambient piano" --lyrics "moonlight falls"
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional

from .app.settings import Settings
from .services.generator import MusicGenerator
from .services.pipeline import GenerationPipeline
from .services.signing import UrlSigner
from .services.store import InMemoryGenerationStore
from .services.tagging import TagExtractor
from .services.vocabulary import load_vocabulary


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate music from a text prompt.")
    parser.add_argument("--prompt", required=True, help="Description of the desired music.")
    parser.add_argument("--lyrics", default=None, help="Optional lyrics sung as one verse.")
    parser.add_argument(
        "--tags",
        default=None,
        help="Skip extraction and use these six comma-separated tags.",
    )
    parser.add_argument(
        "--tags-only",
        action="store_true",
        help="Stop after tag extraction.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=None,
        help="Optional duration override in seconds.",
    )
    parser.add_argument(
        "--tags-path",
        type=Path,
        default=None,
        help="Override the tag vocabulary JSON document.",
    )
    return parser.parse_args()


async def _run(
    prompt: str,
    *,
    lyrics: Optional[str] = None,
    tags: Optional[str] = None,
    tags_only: bool = False,
    duration: Optional[int] = None,
    tags_path: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> dict[str, object]:
    settings_kwargs: dict[str, object] = {}
    if duration is not None:
        settings_kwargs["generation_duration_seconds"] = duration
    if tags_path is not None:
        settings_kwargs["tags_path"] = tags_path
    if settings is None:
        settings = Settings(**settings_kwargs)
    elif settings_kwargs:
        settings = settings.model_copy(update=settings_kwargs)

    extractor = TagExtractor(settings, load_vocabulary(settings.tags_path))
    if tags_only:
        extraction = await extractor.extract(prompt)
        result: dict[str, object] = {
            "prompt": extraction.prompt,
            "tags": extraction.tags,
            "extractedTags": extraction.extracted_tags,
        }
        if extraction.unknown_tags:
            result["unknownTags"] = extraction.unknown_tags
        print(json.dumps(result, indent=2))
        return result

    pipeline = GenerationPipeline(
        settings,
        extractor,
        MusicGenerator(settings),
        UrlSigner(settings.url_hash_secret.get_secret_value()),
        InMemoryGenerationStore(),
    )
    outcome = await pipeline.generate(prompt, lyrics=lyrics, tags=tags)
    result = {
        "generationId": outcome.generation_id,
        "tags": outcome.tags,
        "audioUrl": outcome.upstream_url,
    }
    print(json.dumps(result, indent=2))
    return result


def main() -> None:
    args = _parse_args()
    asyncio.run(
        _run(
            args.prompt,
            lyrics=args.lyrics,
            tags=args.tags,
            tags_only=args.tags_only,
            duration=args.duration,
            tags_path=args.tags_path,
        )
    )


if __name__ == "__main__":
    main()
