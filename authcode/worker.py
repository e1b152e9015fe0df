"""Standalone expiry sweeper process.

RUN:  python -m authcode.worker

The API process runs a sweeper in its lifespan by default.  With several
API replicas sharing one Postgres store, N sweepers issue N identical range
deletes; set SWEEPER_ENABLED=false on the API replicas and run one of these
instead:

  api:     uvicorn authcode.main:app --host 0.0.0.0 --port 8000
  sweeper: python -m authcode.worker

Purging is idempotent, so briefly running two during a deploy is harmless.
"""

from __future__ import annotations

import asyncio
import logging

from authcode.core.config import SETTINGS
from authcode.core.logging import setup_logging
from authcode.db.engine import lifespan_db
from authcode.db.redis import lifespan_redis
from authcode.services.authorization_code_service import code_store
from authcode.services.expiry_sweeper import ExpirySweeper

logger = logging.getLogger("authcode.worker")


async def run_worker() -> None:
    """Sweep expired codes every SWEEP_INTERVAL_SEC until cancelled."""
    sweeper = ExpirySweeper(code_store, interval_seconds=SETTINGS.sweep_interval_sec)

    async with lifespan_db():
        async with lifespan_redis():
            logger.info("Sweeper worker running in standalone mode")
            sweeper.start()
            try:
                await sweeper.wait()
            finally:
                await sweeper.stop()


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
