from __future__ import annotations

import base64
import hashlib
import secrets

from authcode.core.errors import EntropyUnavailable

# 32 bytes = 256 bits, 43 chars after unpadded base64url encoding
CODE_ENTROPY_BYTES = 32
MIN_CODE_ENTROPY_BYTES = 16

# Characters of the sha256 hex digest shown in logs and errors
HASH_PREFIX_LEN = 12


def generate_code(nbytes: int = CODE_ENTROPY_BYTES) -> str:
    """Return a fresh URL-safe authorization code.

    An entropy failure is raised, never papered over with a weaker source:
    a predictable code is worse than no code.
    """
    if nbytes < MIN_CODE_ENTROPY_BYTES:
        raise ValueError(
            f"authorization codes need at least {MIN_CODE_ENTROPY_BYTES} bytes "
            f"of entropy (got {nbytes})"
        )
    try:
        random_bytes = secrets.token_bytes(nbytes)
    except (OSError, NotImplementedError) as exc:
        raise EntropyUnavailable("OS entropy source unavailable") from exc
    return base64.urlsafe_b64encode(random_bytes).rstrip(b"=").decode("ascii")


def hash_code(code: str) -> str:
    """Storage key for a code.  Backends never persist the raw value."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def hash_prefix(code: str) -> str:
    return hash_code(code)[:HASH_PREFIX_LEN]
