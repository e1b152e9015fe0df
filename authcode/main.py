from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from authcode.api.errors import register_error_handlers
from authcode.api.health import router as health_router
from authcode.api.metrics_endpoint import router as metrics_router
from authcode.core.config import SETTINGS
from authcode.core.logging import setup_logging
from authcode.db.engine import lifespan_db
from authcode.db.redis import lifespan_redis
from authcode.middleware.request_context import (
    RequestContextMiddleware,
    install_request_context_filter,
)
from authcode.services.authorization_code_service import code_store
from authcode.services.expiry_sweeper import ExpirySweeper

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Backing services first, sweeper last; teardown runs in reverse so the
    # sweeper never touches a closed pool.
    async with lifespan_db():
        async with lifespan_redis():
            sweeper: ExpirySweeper | None = None
            if SETTINGS.sweeper_enabled:
                sweeper = ExpirySweeper(
                    code_store, interval_seconds=SETTINGS.sweep_interval_sec
                )
                sweeper.start()
            app.state.sweeper = sweeper
            try:
                yield
            finally:
                if sweeper is not None:
                    await sweeper.stop()


app = FastAPI(
    title="authcode-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(RequestContextMiddleware)
register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)

logger.info(
    "authcode-service started  env=%s store=%s code_ttl=%ss mismatch_policy=%s",
    SETTINGS.app_env,
    code_store.name,
    SETTINGS.auth_code_ttl_sec,
    SETTINGS.client_mismatch_policy,
)
