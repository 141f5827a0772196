"""Shared service-layer exceptions."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TextToMusicError(Exception):
    """Expected failure that maps onto an HTTP error response."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def as_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(TextToMusicError):
    """Bad or missing input, including a tag reply of the wrong size."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        details: Optional[str] = None,
        raw_tags: Optional[str] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.raw_tags = raw_tags

    def as_payload(self) -> dict[str, object]:
        payload = super().as_payload()
        if self.raw_tags is not None:
            payload["tags"] = self.raw_tags
        return payload


class AuthError(TextToMusicError):
    status_code = 401


class UpstreamAuthError(AuthError):
    """An upstream model rejected our credentials."""


class ForbiddenError(TextToMusicError):
    status_code = 403


class NotFoundError(TextToMusicError):
    status_code = 404


class RateLimitError(TextToMusicError):
    status_code = 429


class ConfigError(TextToMusicError):
    """A required credential or setting is missing."""


class GenerationError(TextToMusicError):
    """Music generation failed for a reason the user cannot fix."""


class StorageError(TextToMusicError):
    """Durable storage copy failed."""


class UpstreamFailureKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    TRANSPORT = "transport"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class UpstreamError(TextToMusicError):
    """Failure reported by a third-party model API."""

    def __init__(
        self,
        kind: UpstreamFailureKind,
        message: str,
        *,
        service: str,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.service = service

    @classmethod
    def from_status(cls, status: Optional[int], message: str, *, service: str) -> "UpstreamError":
        if status in (401, 403):
            kind = UpstreamFailureKind.UNAUTHORIZED
        elif status == 429:
            kind = UpstreamFailureKind.RATE_LIMITED
        else:
            kind = UpstreamFailureKind.UNKNOWN
        return cls(kind, message, service=service)
