"""Prompt-to-tags extraction backed by an OpenAI chat model."""

from __future__ import annotations

from typing import Any, List, Optional

import openai
from loguru import logger

from ..app.settings import Settings
from .exceptions import ConfigError, UpstreamError, UpstreamFailureKind, ValidationError
from .types import ExtractionResult
from .vocabulary import TagVocabulary

TAG_COUNT = 6
SERVICE_NAME = "openai"

EXAMPLE_PROMPT = "Create an upbeat electronic dance track with female vocals"
EXAMPLE_TAGS = "electronic, dance, uplifting, synthesizer, female, bright vocal"


def build_system_prompt(vocabulary: TagVocabulary) -> str:
    return f"""You are a music tag extraction expert. Given a natural language prompt about music, extract exactly {TAG_COUNT} tags total representing the music's characteristics.

Available tags:
GENRES: {', '.join(vocabulary.genres)}
INSTRUMENTS: {', '.join(vocabulary.instruments)}
MOODS: {', '.join(vocabulary.moods)}
GENDER: {', '.join(vocabulary.gender)}
TIMBRE: {', '.join(vocabulary.timbre)}

Rules:
1. Extract exactly {TAG_COUNT} tags total from ALL categories combined
2. Choose the most relevant tags that best represent the user's request
3. Ensure you cover different aspects: genre, instrument, mood, gender (if vocals), timbre (if vocals)
4. Return ONLY the {TAG_COUNT} tags as a comma-separated string
5. Use exact tag names from the lists above
6. If no gender/timbre is specified but vocals are implied, choose appropriate defaults

Example:
Input: "{EXAMPLE_PROMPT}"
Output: {EXAMPLE_TAGS}"""


def parse_tags(text: str) -> List[str]:
    """Split a comma-separated reply, rejecting anything but exactly six tags."""
    tags = [tag.strip() for tag in text.split(",")]
    if len(tags) != TAG_COUNT:
        raise ValidationError(f"Expected {TAG_COUNT} tags, got {len(tags)}", raw_tags=text)
    if any(not tag for tag in tags):
        raise ValidationError(f"Expected {TAG_COUNT} non-empty tags", raw_tags=text)
    return tags


def classify_openai_error(exc: Exception) -> UpstreamError:
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        kind = UpstreamFailureKind.UNAUTHORIZED
    elif isinstance(exc, openai.RateLimitError):
        kind = UpstreamFailureKind.RATE_LIMITED
    elif isinstance(exc, openai.APIConnectionError):
        kind = UpstreamFailureKind.TRANSPORT
    elif isinstance(exc, openai.APIStatusError):
        return UpstreamError.from_status(exc.status_code, message, service=SERVICE_NAME)
    else:
        kind = UpstreamFailureKind.UNKNOWN
    return UpstreamError(kind, message, service=SERVICE_NAME)


class TagExtractor:
    """Turns a free-text prompt into six canonical music tags."""

    def __init__(
        self,
        settings: Settings,
        vocabulary: TagVocabulary,
        *,
        client: Optional[Any] = None,
    ) -> None:
        self._settings = settings
        self._vocabulary = vocabulary
        self._client = client
        self._system_prompt = build_system_prompt(vocabulary)

    @property
    def vocabulary(self) -> TagVocabulary:
        return self._vocabulary

    @property
    def configured(self) -> bool:
        return self._client is not None or self._settings.openai_api_key is not None

    async def extract(self, prompt: str) -> ExtractionResult:
        client = self._ensure_client()
        try:
            completion = await client.chat.completions.create(
                model=self._settings.openai_model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self._settings.tag_max_tokens,
                temperature=self._settings.tag_temperature,
            )
        except openai.OpenAIError as exc:
            raise classify_openai_error(exc) from exc

        raw = _first_message_content(completion)
        if not raw:
            raise UpstreamError(
                UpstreamFailureKind.UNKNOWN,
                "tag model returned an empty reply",
                service=SERVICE_NAME,
            )
        return self.validate(prompt, raw)

    def validate(self, prompt: str, raw: str) -> ExtractionResult:
        tags = parse_tags(raw)
        unknown = self._vocabulary.unknown(tags)
        if unknown:
            logger.warning("Tag reply contains off-vocabulary tags: {}", unknown)
        return ExtractionResult(
            prompt=prompt,
            tags=raw,
            extracted_tags=tags,
            unknown_tags=unknown,
        )

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        api_key = self._settings.openai_api_key
        if api_key is None:
            raise ConfigError("OpenAI API key not configured")
        self._client = openai.AsyncOpenAI(api_key=api_key.get_secret_value())
        return self._client


def _first_message_content(completion: Any) -> str:
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) or ""
    return content.strip()
