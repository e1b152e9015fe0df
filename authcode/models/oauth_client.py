from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Client:
    """The authenticated OAuth2 client presenting a code at the token endpoint."""

    client_id: str
    redirect_uris: tuple[str, ...] = ()
    is_public: bool = True
