"""Translate authorization code errors into RFC 6749 §5.2 error responses.

Any router mounted on the app (authorize, token) can let AuthCodeError
propagate; the handler renders::

    HTTP/1.1 400 Bad Request
    Cache-Control: no-store

    {"error": "invalid_grant", "error_description": "invalid authorization code"}

The description is the class-level ``public_description``, never the
exception message: messages carry hash prefixes and client ids meant for
operators, and ClientMismatch must look exactly like any other
invalid_grant so a client cannot probe which codes exist.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authcode.core.errors import AuthCodeError

logger = logging.getLogger(__name__)


def oauth_error_body(exc: AuthCodeError) -> dict[str, str]:
    return {"error": exc.oauth_error, "error_description": exc.public_description}


async def _auth_code_error_handler(
    _request: Request, exc: AuthCodeError
) -> JSONResponse:
    if exc.status_code >= 500:
        # Server-side faults page operators; the client only learns "retry later"
        logger.error("authorization code service failure: %s", exc, exc_info=exc)
    headers = {"Cache-Control": "no-store", "Pragma": "no-cache"}
    if exc.status_code == 503:
        headers["Retry-After"] = "1"
    return JSONResponse(
        status_code=exc.status_code,
        content=oauth_error_body(exc),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(
        AuthCodeError, _auth_code_error_handler  # type: ignore[arg-type]
    )
