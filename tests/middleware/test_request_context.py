"""Tests for the request context middleware.

Every response gets an X-Request-ID header (generated or echoed from the
request), and log lines emitted while the request is in flight carry it.
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authcode.api.errors import register_error_handlers
from authcode.core.errors import InvalidGrant
from authcode.middleware.request_context import (
    RequestContextMiddleware,
    _RequestContextFilter,
    install_request_context_filter,
    request_id_var,
)


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_oauth_error_responses() -> None:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    @app.post("/token")
    async def token() -> dict:
        raise InvalidGrant("unknown code")

    resp = TestClient(app).post("/token", headers={"X-Request-ID": "req-7"})
    assert resp.status_code == 400
    assert resp.headers.get("x-request-id") == "req-7"


def test_request_summary_line_carries_request_id(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.handler.addFilter(_RequestContextFilter())
    with caplog.at_level(logging.INFO, logger="authcode.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "trace-me"})

    lines = [r for r in caplog.records if getattr(r, "path", None) == "/health"]
    assert lines
    assert lines[0].request_id == "trace-me"
    assert lines[0].status_code == 200


def test_filter_defaults_outside_a_request() -> None:
    record = logging.LogRecord("x", logging.INFO, "x.py", 1, "m", (), None)
    _RequestContextFilter().filter(record)
    assert record.request_id == "-"  # type: ignore[attr-defined]
    assert request_id_var.get() == "-"


def test_install_is_idempotent() -> None:
    install_request_context_filter()
    install_request_context_filter()
    for handler in logging.getLogger().handlers:
        filters = [f for f in handler.filters if isinstance(f, _RequestContextFilter)]
        assert len(filters) == 1
