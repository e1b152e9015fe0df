"""Background reclamation of expired, never-redeemed authorization codes.

The sweeper is housekeeping only.  Stores already answer NOT_FOUND for
expired codes, so a stopped or failing sweeper costs storage, never
security.  That is why a failed sweep is logged and the loop keeps going.

The interval must be shorter than the code TTL (enforced in config) so
abandoned codes do not pile up for more than about one TTL.
"""

from __future__ import annotations

import asyncio
import logging

from authcode.core.clock import Clock, system_clock
from authcode.core.metrics import (
    AUTH_CODE_STORE_ERRORS,
    AUTH_CODES_PURGED,
    SWEEPER_LAST_RUN,
)
from authcode.repos.auth_code_store import AuthCodeStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        store: AuthCodeStore,
        *,
        interval_seconds: float,
        clock: Clock = system_clock,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._interval = interval_seconds
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self.last_run_at: float | None = None
        self.last_purged = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        now = self._clock()
        purged = await self._store.purge_expired(now)
        self.last_run_at = now
        self.last_purged = purged
        AUTH_CODES_PURGED.inc(purged)
        SWEEPER_LAST_RUN.set(now)
        if purged:
            logger.info(
                "purged %d expired authorization codes",
                purged,
                extra={"purged": purged},
            )
        return purged

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="auth-code-sweeper")
        logger.info(
            "Expiry sweeper started  store=%s interval=%.1fs",
            self._store.name,
            self._interval,
        )

    async def wait(self) -> None:
        """Block until the loop ends; it only ends when cancelled."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Expiry sweeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                AUTH_CODE_STORE_ERRORS.labels(operation="purge").inc()
                logger.exception("Expiry sweep failed; retrying next interval")
