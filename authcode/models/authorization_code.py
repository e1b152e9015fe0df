from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    """A validated authorization request handed over by the authorize endpoint.

    Client existence, redirect_uri registration and scope grantability are
    checked before this object exists; nothing downstream re-validates them.
    """

    client_id: str
    redirect_uri: str | None
    scopes: frozenset[str]
    state: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    nonce: str | None = None
    transaction_id: str | None = None
    parameters: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AuthorizationCode:
    id: UUID
    code: str
    client_id: str
    subject_id: str
    redirect_uri: str | None
    scopes: frozenset[str]
    created_at: float
    expires_at: float
    transaction_id: str | None = None
    nonce: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    request_parameters: Mapping[str, str] = field(default_factory=dict)

    @staticmethod
    def new(
        *,
        code: str,
        request: AuthorizationRequest,
        subject_id: str,
        created_at: float,
        ttl_seconds: float,
    ) -> AuthorizationCode:
        return AuthorizationCode(
            id=uuid4(),
            code=code,
            client_id=request.client_id,
            subject_id=subject_id,
            redirect_uri=request.redirect_uri,
            scopes=frozenset(request.scopes),
            created_at=created_at,
            expires_at=created_at + ttl_seconds,
            transaction_id=request.transaction_id,
            nonce=request.nonce,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
            request_parameters=dict(request.parameters),
        )

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for key-value backends.

        The raw code is left out on purpose: backends key records by the
        code hash and re-attach the presented code on redemption.
        """
        return {
            "id": str(self.id),
            "client_id": self.client_id,
            "subject_id": self.subject_id,
            "redirect_uri": self.redirect_uri,
            "scopes": sorted(self.scopes),
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "transaction_id": self.transaction_id,
            "nonce": self.nonce,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "request_parameters": dict(self.request_parameters),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any], *, code: str) -> AuthorizationCode:
        return AuthorizationCode(
            id=UUID(data["id"]),
            code=code,
            client_id=data["client_id"],
            subject_id=data["subject_id"],
            redirect_uri=data.get("redirect_uri"),
            scopes=frozenset(data.get("scopes") or ()),
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
            transaction_id=data.get("transaction_id"),
            nonce=data.get("nonce"),
            code_challenge=data.get("code_challenge"),
            code_challenge_method=data.get("code_challenge_method"),
            request_parameters=dict(data.get("request_parameters") or {}),
        )
