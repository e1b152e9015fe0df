from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from authcode.core.errors import InvalidGrant
from authcode.models.authorization_code import AuthorizationCode

# Checks the token endpoint runs on a record returned by
# AuthorizationCodeService.remove() before minting tokens:
#   - redirect_uri must repeat the one sent to /authorize (RFC 6749 §4.1.3)
#   - if the code carries a PKCE challenge, the verifier must match it (RFC 7636)
#
# The code is already consumed at this point.  A failed check does not give
# the client another try with the same code.

SUPPORTED_METHODS = ("S256", "plain")


def generate_code_verifier() -> str:
    # 32 random bytes → 43 chars after unpadded base64url, the RFC 7636 minimum
    random_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(random_bytes).rstrip(b"=").decode("utf-8")


def compute_code_challenge(code_verifier: str, method: str = "S256") -> str:
    if method == "plain":
        return code_verifier
    if method != "S256":
        raise ValueError(f"unsupported code_challenge_method {method!r}")
    sha256_digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(sha256_digest).rstrip(b"=").decode("utf-8")


def verify_code_challenge(
    code_verifier: str, expected_challenge: str, method: str = "S256"
) -> bool:
    """Constant-time comparison of the derived challenge with the stored one."""
    if method not in SUPPORTED_METHODS:
        return False
    actual_challenge = compute_code_challenge(code_verifier, method)
    return hmac.compare_digest(
        actual_challenge.encode("utf-8"), expected_challenge.encode("utf-8")
    )


def verify_redemption(
    record: AuthorizationCode,
    *,
    redirect_uri: str | None,
    code_verifier: str | None,
) -> None:
    """Raise InvalidGrant unless the token request matches the stored grant."""
    if record.redirect_uri is not None and redirect_uri != record.redirect_uri:
        raise InvalidGrant("redirect_uri does not match the authorization request")

    if record.code_challenge is None:
        if code_verifier is not None:
            # A verifier without a stored challenge means the request was
            # tampered with somewhere between /authorize and /token
            raise InvalidGrant("code_verifier sent for a code issued without PKCE")
        return

    if not code_verifier:
        raise InvalidGrant("code_verifier required")

    method = record.code_challenge_method or "plain"
    if not verify_code_challenge(code_verifier, record.code_challenge, method):
        raise InvalidGrant("PKCE verification failed")
