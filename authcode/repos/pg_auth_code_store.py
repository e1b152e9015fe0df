"""PostgreSQL implementation of AuthCodeStore.

Every operation runs in its own short transaction on a fresh session from
the factory; the store is shared by all requests, so it cannot borrow a
request-scoped session.

Redemption is a ``DELETE ... RETURNING`` keyed by ``code_hash``.  Postgres
row locking guarantees that when several instances race on the same code
exactly one DELETE returns the row; the others see zero rows.  Whoever
deleted the row then decides, in Python, whether it was expired or
presented by the wrong client.  Nothing is updated in place, so a
redeemed code cannot be "un-redeemed".
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authcode.core.clock import Clock, system_clock
from authcode.core.errors import DuplicateCodeError, StorageUnavailable
from authcode.db.tables import AuthorizationCodeRow
from authcode.models.authorization_code import AuthorizationCode
from authcode.repos.auth_code_store import (
    CLIENT_MISMATCH,
    NOT_FOUND,
    MismatchPolicy,
    Redemption,
)
from authcode.services.code_generator import hash_code


class PgAuthCodeStore:
    """Satisfies the AuthCodeStore Protocol using PostgreSQL."""

    name = "postgres"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        mismatch_policy: MismatchPolicy = "delete",
        clock: Clock = system_clock,
    ) -> None:
        self._session_factory = session_factory
        self._mismatch_policy = mismatch_policy
        self._clock = clock

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except IntegrityError:
            raise
        # asyncpg raises OSError subclasses (ConnectionRefusedError, TimeoutError)
        # straight through when it cannot connect
        except (SQLAlchemyError, OSError) as exc:
            raise StorageUnavailable(f"postgres {operation} failed") from exc

    async def put(self, record: AuthorizationCode) -> None:
        code_hash = hash_code(record.code)
        try:
            async with self._transaction("put") as session:
                session.add(_auth_code_to_row(record, code_hash))
        except IntegrityError:
            raise DuplicateCodeError(
                f"code {code_hash[:12]}… already stored"
            ) from None

    async def take_if_valid(self, code: str, client_id: str) -> Redemption:
        code_hash = hash_code(code)
        now = self._clock()
        async with self._transaction("take") as session:
            if self._mismatch_policy == "delete":
                # Any attempt burns the code
                row = await _delete_returning(
                    session, AuthorizationCodeRow.code_hash == code_hash
                )
                if row is None or row.expires_at <= now:
                    return NOT_FOUND
                if row.client_id != client_id:
                    return CLIENT_MISMATCH
                return Redemption.redeemed(_row_to_auth_code(row, code))

            row = await _delete_returning(
                session,
                AuthorizationCodeRow.code_hash == code_hash,
                AuthorizationCodeRow.client_id == client_id,
            )
            if row is not None:
                if row.expires_at <= now:
                    return NOT_FOUND
                return Redemption.redeemed(_row_to_auth_code(row, code))

            # Not ours to redeem: find out whether it exists for another client
            stmt = (
                select(AuthorizationCodeRow)
                .where(AuthorizationCodeRow.code_hash == code_hash)
                .with_for_update()
            )
            other = (await session.execute(stmt)).scalar_one_or_none()
            if other is None:
                return NOT_FOUND
            if other.expires_at <= now:
                await session.delete(other)
                return NOT_FOUND
            return CLIENT_MISMATCH

    async def purge_expired(self, now: float | None = None) -> int:
        cutoff = self._clock() if now is None else now
        async with self._transaction("purge") as session:
            result = await session.execute(
                delete(AuthorizationCodeRow).where(
                    AuthorizationCodeRow.expires_at <= cutoff
                )
            )
            return result.rowcount or 0

    async def ping(self) -> None:
        async with self._transaction("ping") as session:
            await session.execute(select(1))


async def _delete_returning(session: AsyncSession, *criteria):
    stmt = delete(AuthorizationCodeRow).where(*criteria).returning(AuthorizationCodeRow)
    return (await session.execute(stmt)).scalar_one_or_none()


def _auth_code_to_row(
    record: AuthorizationCode, code_hash: str
) -> AuthorizationCodeRow:
    return AuthorizationCodeRow(
        id=record.id,
        code_hash=code_hash,
        client_id=record.client_id,
        subject_id=record.subject_id,
        redirect_uri=record.redirect_uri,
        scopes=sorted(record.scopes),
        transaction_id=record.transaction_id,
        nonce=record.nonce,
        code_challenge=record.code_challenge,
        code_challenge_method=record.code_challenge_method,
        request_parameters=dict(record.request_parameters),
        created_at=record.created_at,
        expires_at=record.expires_at,
    )


def _row_to_auth_code(row: AuthorizationCodeRow, code: str) -> AuthorizationCode:
    return AuthorizationCode(
        id=row.id,
        code=code,
        client_id=row.client_id,
        subject_id=row.subject_id,
        redirect_uri=row.redirect_uri,
        scopes=frozenset(row.scopes),
        created_at=row.created_at,
        expires_at=row.expires_at,
        transaction_id=row.transaction_id,
        nonce=row.nonce,
        code_challenge=row.code_challenge,
        code_challenge_method=row.code_challenge_method,
        request_parameters=dict(row.request_parameters or {}),
    )
