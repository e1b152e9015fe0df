"""Authorization code lifecycle: issue on /authorize, redeem on /token.

    create(request, user)  →  ISSUED
    remove(code, client)   →  REDEEMED   (exactly once, by the bound client)
    deadline passes        →  EXPIRED    (remove() answers None from then on)

Both terminal states are expressed by deleting the record from the store;
records are never updated in place.  The store is the only place a record
lives, so this service holds nothing between calls.

OUTCOMES
--------
``remove`` answers ``None`` for a code that is unknown, expired or already
redeemed.  That is normal traffic (double submits, slow users) and the token
endpoint turns it into ``invalid_grant``.  A live code presented by the
wrong client raises ``ClientMismatch``: it renders as the same
``invalid_grant`` but is logged on the security logger first, because an
honest client never holds another client's code.

BOUNDED WAITS
-------------
Every store call runs under ``asyncio.timeout``.  A timeout during
``create`` leaves the write outcome unknown; the code is never returned,
so even if the write landed nobody can redeem it and it simply expires.
The caller restarts the authorization flow with a fresh code.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from authcode.core.clock import Clock, system_clock
from authcode.core.config import SETTINGS, Settings
from authcode.core.errors import (
    ClientMismatch,
    CodeIssuanceError,
    DuplicateCodeError,
    StorageUnavailable,
)
from authcode.core.logging import SECURITY_LOGGER_NAME
from authcode.core.metrics import (
    AUTH_CODE_COLLISIONS,
    AUTH_CODE_REDEMPTIONS,
    AUTH_CODE_STORE_ERRORS,
    AUTH_CODES_ISSUED,
)
from authcode.db.engine import async_session_factory
from authcode.db.redis import redis_pool
from authcode.models.authorization_code import AuthorizationCode, AuthorizationRequest
from authcode.models.oauth_client import Client
from authcode.models.user import User
from authcode.repos.auth_code_store import (
    AuthCodeStore,
    InMemoryAuthCodeStore,
    RedemptionOutcome,
)
from authcode.repos.pg_auth_code_store import PgAuthCodeStore
from authcode.repos.redis_auth_code_store import RedisAuthCodeStore
from authcode.services.code_generator import generate_code, hash_prefix

logger = logging.getLogger(__name__)
security_logger = logging.getLogger(SECURITY_LOGGER_NAME)

T = TypeVar("T")


class AuthorizationCodeService:
    def __init__(
        self,
        store: AuthCodeStore,
        *,
        ttl_seconds: float,
        generator: Callable[[], str] = generate_code,
        clock: Clock = system_clock,
        max_create_attempts: int = 3,
        operation_timeout: float = 2.0,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive (got {ttl_seconds})")
        if max_create_attempts < 1:
            raise ValueError("max_create_attempts must be >= 1")
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._generate = generator
        self._clock = clock
        self._max_create_attempts = max_create_attempts
        self._operation_timeout = operation_timeout

    @property
    def store(self) -> AuthCodeStore:
        return self._store

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    async def _bounded(
        self, operation: str, awaitable: Awaitable[T], *, timeout_message: str
    ) -> T:
        try:
            async with asyncio.timeout(self._operation_timeout):
                return await awaitable
        except TimeoutError:
            AUTH_CODE_STORE_ERRORS.labels(operation=operation).inc()
            raise StorageUnavailable(timeout_message) from None
        except StorageUnavailable:
            AUTH_CODE_STORE_ERRORS.labels(operation=operation).inc()
            raise

    async def create(
        self, request: AuthorizationRequest, user: User
    ) -> AuthorizationCode:
        """Issue and store a code bound to the request and the approving user.

        Only ``record.code`` should travel to the client (in the redirect).
        """
        for attempt in range(1, self._max_create_attempts + 1):
            record = AuthorizationCode.new(
                code=self._generate(),
                request=request,
                subject_id=user.id,
                created_at=self._clock(),
                ttl_seconds=self._ttl_seconds,
            )
            try:
                await self._bounded(
                    "put",
                    self._store.put(record),
                    timeout_message=(
                        "authorization code write timed out; outcome unknown, "
                        "restart the authorization flow"
                    ),
                )
            except DuplicateCodeError:
                AUTH_CODE_COLLISIONS.inc()
                logger.error(
                    "authorization code collision  attempt=%d/%d client_id=%s",
                    attempt,
                    self._max_create_attempts,
                    request.client_id,
                )
                continue

            AUTH_CODES_ISSUED.inc()
            code_hash = hash_prefix(record.code)
            logger.info(
                "authorization code issued  client_id=%s subject=%s code=%s… "
                "expires_in=%ss",
                record.client_id,
                record.subject_id,
                code_hash,
                self._ttl_seconds,
                extra={"client_id": record.client_id, "code_hash": code_hash},
            )
            return record

        security_logger.critical(
            "authorization code generation collided %d times in a row  client_id=%s",
            self._max_create_attempts,
            request.client_id,
            extra={"client_id": request.client_id},
        )
        raise CodeIssuanceError(
            f"could not store a unique authorization code after "
            f"{self._max_create_attempts} attempts"
        )

    async def remove(self, code: str, client: Client) -> AuthorizationCode | None:
        """Redeem ``code`` for ``client``; the record is gone afterwards.

        Returns None when the code is unknown, expired or already redeemed.
        Raises ClientMismatch when the code is live but bound to another client.
        """
        if not code:
            AUTH_CODE_REDEMPTIONS.labels(result="not_found").inc()
            return None

        redemption = await self._bounded(
            "take",
            self._store.take_if_valid(code, client.client_id),
            timeout_message="authorization code redemption timed out",
        )
        code_hash = hash_prefix(code)
        AUTH_CODE_REDEMPTIONS.labels(result=redemption.outcome.value).inc()
        log_fields = {
            "client_id": client.client_id,
            "code_hash": code_hash,
            "outcome": redemption.outcome.value,
        }

        if redemption.outcome is RedemptionOutcome.CLIENT_MISMATCH:
            security_logger.warning(
                "authorization code presented by a client it was not issued to  "
                "client_id=%s code=%s…",
                client.client_id,
                code_hash,
                extra=log_fields,
            )
            raise ClientMismatch(
                client_id=client.client_id, code_hash_prefix=code_hash
            )

        if redemption.outcome is RedemptionOutcome.NOT_FOUND:
            logger.info(
                "authorization code not redeemable  client_id=%s code=%s…",
                client.client_id,
                code_hash,
                extra=log_fields,
            )
            return None

        logger.info(
            "authorization code redeemed  client_id=%s code=%s…",
            client.client_id,
            code_hash,
            extra=log_fields,
        )
        return redemption.record


def build_code_store(
    settings: Settings, *, clock: Clock = system_clock
) -> AuthCodeStore:
    """Pick the backend: Postgres, then Redis, then in-process memory."""
    policy = settings.client_mismatch_policy
    if async_session_factory is not None:
        return PgAuthCodeStore(
            async_session_factory, mismatch_policy=policy, clock=clock
        )
    if redis_pool is not None:
        return RedisAuthCodeStore(redis_pool, mismatch_policy=policy, clock=clock)
    return InMemoryAuthCodeStore(mismatch_policy=policy, clock=clock)


# ---------------------------------------------------------------------------
# Module-level singletons; backend chosen from configuration
# ---------------------------------------------------------------------------

code_store: AuthCodeStore = build_code_store(SETTINGS)

authorization_code_service = AuthorizationCodeService(
    code_store,
    ttl_seconds=SETTINGS.auth_code_ttl_sec,
    max_create_attempts=SETTINGS.auth_code_max_attempts,
    operation_timeout=SETTINGS.store_timeout_sec,
)
