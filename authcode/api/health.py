"""Health and readiness endpoints.

  /health (liveness): always 200 while the process can answer.  The body
    reports the code store and the expiry sweeper so a dashboard can show
    "degraded" without Kubernetes restarting a pod over a Redis blip.

  /ready (readiness): 503 when the code store cannot be reached.  Without
    its store this service can neither issue nor redeem a single code, so
    the instance is taken out of rotation until the backend is back.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response, status

from authcode.core.errors import StorageUnavailable
from authcode.services.authorization_code_service import code_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _store_status() -> str:
    try:
        await code_store.ping()
    except StorageUnavailable:
        logger.warning("code store %s unreachable", code_store.name)
        return "degraded"
    return "ok"


@router.get("/health")
async def health(request: Request) -> dict:
    store_status = await _store_status()
    checks: dict[str, object] = {
        "store": {"backend": code_store.name, "status": store_status}
    }

    sweeper = getattr(request.app.state, "sweeper", None)
    if sweeper is None:
        checks["sweeper"] = {"status": "disabled"}
    else:
        checks["sweeper"] = {
            "status": "running" if sweeper.running else "stopped",
            "last_run_at": sweeper.last_run_at,
            "last_purged": sweeper.last_purged,
        }

    return {
        "status": "ok" if store_status == "ok" else "degraded",
        "checks": checks,
    }


@router.get("/ready")
async def ready() -> Response:
    if await _store_status() != "ok":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
