from __future__ import annotations

import hashlib
import hmac
import re

import pytest

from texttomusic.services.signing import UrlSigner, generate_secure_id

URL = "https://replicate.delivery/pbxt/abc123/output.wav"
GEN_ID = "65f0c1d2e3a4b5c6d7e8f901"


@pytest.fixture
def signer() -> UrlSigner:
    return UrlSigner("test-secret")


def test_sign_matches_truncated_hmac(signer: UrlSigner) -> None:
    expected = hmac.new(
        b"test-secret", f"{URL}:{GEN_ID}".encode(), hashlib.sha256
    ).hexdigest()[:32]

    token = signer.sign(URL, GEN_ID)

    assert token == expected
    assert re.fullmatch(r"[0-9a-f]{32}", token)


def test_sign_is_deterministic(signer: UrlSigner) -> None:
    assert signer.sign(URL, GEN_ID) == signer.sign(URL, GEN_ID)


def test_sign_changes_with_either_argument(signer: UrlSigner) -> None:
    token = signer.sign(URL, GEN_ID)
    assert signer.sign(URL + "?v=2", GEN_ID) != token
    assert signer.sign(URL, GEN_ID[:-1] + "0") != token
    assert UrlSigner("other-secret").sign(URL, GEN_ID) != token


def test_verify_accepts_own_token(signer: UrlSigner) -> None:
    assert signer.verify(URL, GEN_ID, signer.sign(URL, GEN_ID))


def test_verify_rejects_token_for_other_id(signer: UrlSigner) -> None:
    other_id = "65f0c1d2e3a4b5c6d7e8f902"
    assert not signer.verify(URL, GEN_ID, signer.sign(URL, other_id))


@pytest.mark.parametrize(
    "supplied",
    [
        "",
        "abc",
        "zz" * 16,
        "a" * 31,
        "a" * 64,
        "ab cd" + "0" * 27,
        "é" * 32,
    ],
)
def test_verify_returns_false_for_malformed_tokens(signer: UrlSigner, supplied: str) -> None:
    assert signer.verify(URL, GEN_ID, supplied) is False


def test_verify_rejects_non_string_token(signer: UrlSigner) -> None:
    assert signer.verify(URL, GEN_ID, None) is False  # type: ignore[arg-type]


def test_build_path_round_trip(signer: UrlSigner) -> None:
    path = signer.build_path(GEN_ID, signer.sign(URL, GEN_ID))
    assert path == f"/api/audio/{GEN_ID}/{signer.sign(URL, GEN_ID)}"

    generation_id, token = UrlSigner.parse_path(path)

    assert generation_id == GEN_ID
    assert signer.verify(URL, generation_id, token)


@pytest.mark.parametrize("path", ["/api/other/a/b", "/api/audio/only-one", "/api/audio/a/b/c"])
def test_parse_path_rejects_foreign_paths(path: str) -> None:
    with pytest.raises(ValueError):
        UrlSigner.parse_path(path)


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        UrlSigner("")


def test_generate_secure_id_shape() -> None:
    ids = {generate_secure_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.fullmatch(r"[0-9a-f]{24}", value) for value in ids)
