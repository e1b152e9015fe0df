"""Error taxonomy for the authorization code lifecycle.

Only exceptional conditions are raised.  An unknown, expired or already
redeemed code is an expected outcome and comes back from
``AuthorizationCodeService.remove`` as ``None``; the token endpoint turns
that into ``InvalidGrant`` itself.

Each error carries the RFC 6749 error code and the HTTP status the
HTTP-facing endpoints should answer with (rendered by the handlers in
``authcode/api/errors.py``).
"""

from __future__ import annotations


class AuthCodeError(Exception):
    """Base class for everything raised by the authorization code core."""

    oauth_error = "server_error"
    status_code = 500
    # Text safe to show to OAuth clients; never includes codes or hashes
    public_description = "internal error"


class InvalidGrant(AuthCodeError):
    """The presented code cannot be redeemed (RFC 6749 §5.2 invalid_grant)."""

    oauth_error = "invalid_grant"
    status_code = 400
    public_description = "invalid authorization code"


class ClientMismatch(InvalidGrant):
    """A live code was presented by a client other than the one it was issued to.

    Rendered to the client exactly like any other invalid_grant.  Operators
    should treat it as a possible code-injection attempt.
    """

    def __init__(self, *, client_id: str, code_hash_prefix: str) -> None:
        super().__init__(
            f"authorization code {code_hash_prefix}… was not issued to "
            f"client {client_id!r}"
        )
        self.client_id = client_id
        self.code_hash_prefix = code_hash_prefix


class DuplicateCodeError(AuthCodeError):
    """The store already holds a record under this code."""


class CodeIssuanceError(AuthCodeError):
    """Repeated code collisions; the generator or store is broken."""


class StorageUnavailable(AuthCodeError):
    """The backing store failed or did not answer in time."""

    oauth_error = "temporarily_unavailable"
    status_code = 503
    public_description = "authorization server temporarily unavailable"


class EntropyUnavailable(AuthCodeError):
    """The OS entropy source could not produce random bytes."""
