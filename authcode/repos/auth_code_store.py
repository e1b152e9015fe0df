from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from authcode.core.clock import Clock, system_clock
from authcode.core.errors import DuplicateCodeError
from authcode.models.authorization_code import AuthorizationCode
from authcode.services.code_generator import hash_code

MismatchPolicy = Literal["delete", "retain"]


class RedemptionOutcome(enum.Enum):
    REDEEMED = "redeemed"
    NOT_FOUND = "not_found"
    CLIENT_MISMATCH = "client_mismatch"


@dataclass(frozen=True, slots=True)
class Redemption:
    """Result of ``take_if_valid``; ``record`` is set only when redeemed."""

    outcome: RedemptionOutcome
    record: AuthorizationCode | None = None

    @staticmethod
    def redeemed(record: AuthorizationCode) -> Redemption:
        return Redemption(RedemptionOutcome.REDEEMED, record)


NOT_FOUND = Redemption(RedemptionOutcome.NOT_FOUND)
CLIENT_MISMATCH = Redemption(RedemptionOutcome.CLIENT_MISMATCH)


@runtime_checkable
class AuthCodeStore(Protocol):
    """Keyed, expiry-aware storage for outstanding authorization codes.

    Implementations synchronize internally; callers never hold locks.
    """

    name: str

    async def put(self, record: AuthorizationCode) -> None:
        """Insert a record.  Raises DuplicateCodeError if the code is taken."""
        ...

    async def take_if_valid(self, code: str, client_id: str) -> Redemption:
        """Atomically look up, check and delete a code.

        Absent and expired codes are both NOT_FOUND so callers cannot tell
        them apart.  A live code presented by another client is
        CLIENT_MISMATCH; whether that attempt also burns the code depends on
        the store's mismatch policy.
        """
        ...

    async def purge_expired(self, now: float | None = None) -> int:
        """Delete every record with expires_at <= now; return how many."""
        ...

    async def ping(self) -> None:
        """Raise StorageUnavailable if the backend cannot be reached."""
        ...


class InMemoryAuthCodeStore:
    """Single-process store for local dev and tests.

    The lock is a ``threading.Lock`` rather than an ``asyncio.Lock`` so the
    store stays correct when sync endpoints run in the threadpool.  Critical
    sections are pure dict operations and never await.
    """

    name = "memory"

    def __init__(
        self,
        *,
        mismatch_policy: MismatchPolicy = "delete",
        clock: Clock = system_clock,
    ) -> None:
        self._by_code_hash: dict[str, AuthorizationCode] = {}
        self._lock = threading.Lock()
        self._mismatch_policy = mismatch_policy
        self._clock = clock

    async def put(self, record: AuthorizationCode) -> None:
        key = hash_code(record.code)
        with self._lock:
            if key in self._by_code_hash:
                raise DuplicateCodeError(f"code {key[:12]}… already stored")
            self._by_code_hash[key] = record

    async def take_if_valid(self, code: str, client_id: str) -> Redemption:
        key = hash_code(code)
        now = self._clock()
        with self._lock:
            record = self._by_code_hash.get(key)
            if record is None:
                return NOT_FOUND
            if record.is_expired(now):
                del self._by_code_hash[key]
                return NOT_FOUND
            if record.client_id != client_id:
                if self._mismatch_policy == "delete":
                    del self._by_code_hash[key]
                return CLIENT_MISMATCH
            del self._by_code_hash[key]
            return Redemption.redeemed(record)

    async def purge_expired(self, now: float | None = None) -> int:
        cutoff = self._clock() if now is None else now
        with self._lock:
            expired = [
                key
                for key, record in self._by_code_hash.items()
                if record.expires_at <= cutoff
            ]
            for key in expired:
                del self._by_code_hash[key]
        return len(expired)

    async def ping(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._by_code_hash)
