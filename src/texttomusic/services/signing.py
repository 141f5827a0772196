"""HMAC tokens that let a public route vouch for a private upstream URL."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Tuple

TOKEN_HEX_LENGTH = 32
AUDIO_ROUTE_PREFIX = "/api/audio/"


def generate_secure_id() -> str:
    """Return 24 lowercase hex characters (12 random bytes)."""
    return secrets.token_hex(12)


class UrlSigner:
    """Signs ``(upstream_url, generation_id)`` pairs with a process-wide secret.

    The token authenticates a claim to know the upstream URL; it does not
    carry the URL. Verification therefore needs the URL resolved server-side
    from the generation id.
    """

    def __init__(self, secret: str | bytes) -> None:
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._secret = secret

    def sign(self, upstream_url: str, generation_id: str) -> str:
        message = f"{upstream_url}:{generation_id}".encode("utf-8")
        digest = hmac.new(self._secret, message, hashlib.sha256).hexdigest()
        return digest[:TOKEN_HEX_LENGTH]

    def verify(self, upstream_url: str, generation_id: str, supplied: str) -> bool:
        expected = bytes.fromhex(self.sign(upstream_url, generation_id))
        if not isinstance(supplied, str) or len(supplied) != TOKEN_HEX_LENGTH:
            return False
        try:
            candidate = bytes.fromhex(supplied)
        except ValueError:
            return False
        return hmac.compare_digest(expected, candidate)

    @staticmethod
    def build_path(generation_id: str, token: str) -> str:
        return f"{AUDIO_ROUTE_PREFIX}{generation_id}/{token}"

    @staticmethod
    def parse_path(path: str) -> Tuple[str, str]:
        if not path.startswith(AUDIO_ROUTE_PREFIX):
            raise ValueError(f"not a signed audio path: {path!r}")
        parts = path[len(AUDIO_ROUTE_PREFIX):].strip("/").split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"not a signed audio path: {path!r}")
        return parts[0], parts[1]

    def signed_path(self, upstream_url: str, generation_id: str) -> str:
        return self.build_path(generation_id, self.sign(upstream_url, generation_id))
