from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class User:
    """The authenticated resource owner approving an authorization request.

    ``id`` becomes the code's subject; identity lookups happen upstream.
    """

    id: str
    username: str | None = None
