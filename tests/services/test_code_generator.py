from __future__ import annotations

import base64
import re

import pytest

from authcode.core.errors import EntropyUnavailable
from authcode.services import code_generator
from authcode.services.code_generator import generate_code, hash_code, hash_prefix

_URLSAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def test_generate_code_is_urlsafe_and_unpadded() -> None:
    code = generate_code()
    assert _URLSAFE.match(code)
    assert len(code) == 43  # 32 bytes, unpadded base64url


def test_generate_code_carries_requested_entropy() -> None:
    code = generate_code(16)
    raw = base64.urlsafe_b64decode(code + "=" * (-len(code) % 4))
    assert len(raw) == 16


def test_generate_code_rejects_weak_entropy() -> None:
    with pytest.raises(ValueError, match="at least 16 bytes"):
        generate_code(8)


def test_generate_code_does_not_repeat() -> None:
    assert len({generate_code() for _ in range(1000)}) == 1000


@pytest.mark.parametrize("error", [OSError("no entropy"), NotImplementedError()])
def test_entropy_failure_is_fatal(
    monkeypatch: pytest.MonkeyPatch, error: Exception
) -> None:
    def broken(_n: int) -> bytes:
        raise error

    monkeypatch.setattr(code_generator.secrets, "token_bytes", broken)

    with pytest.raises(EntropyUnavailable):
        generate_code()


def test_hash_code_is_stable_sha256_hex() -> None:
    assert hash_code("abc") == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )
    assert hash_prefix("abc") == "ba7816bf8f01"
