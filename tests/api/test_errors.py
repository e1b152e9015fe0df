"""OAuth error rendering for errors raised out of the code core."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authcode.api.errors import oauth_error_body, register_error_handlers
from authcode.core.errors import (
    ClientMismatch,
    CodeIssuanceError,
    InvalidGrant,
    StorageUnavailable,
)


def _app_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    register_error_handlers(app)

    @app.post("/token")
    async def token() -> dict:
        raise exc

    return TestClient(app, raise_server_exceptions=False)


def test_invalid_grant_renders_rfc6749_body() -> None:
    resp = _app_raising(InvalidGrant("redirect_uri does not match")).post("/token")
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "invalid_grant",
        "error_description": "invalid authorization code",
    }
    assert resp.headers["cache-control"] == "no-store"
    assert resp.headers["pragma"] == "no-cache"


def test_client_mismatch_is_indistinguishable_from_invalid_grant() -> None:
    mismatch = _app_raising(
        ClientMismatch(client_id="app2", code_hash_prefix="ba7816bf8f01")
    ).post("/token")
    plain = _app_raising(InvalidGrant("unknown code")).post("/token")

    assert mismatch.status_code == plain.status_code == 400
    assert mismatch.json() == plain.json()
    assert "ba7816bf8f01" not in mismatch.text
    assert "app2" not in mismatch.text


def test_storage_unavailable_asks_client_to_retry(
    caplog: pytest.LogCaptureFixture,
) -> None:
    resp = _app_raising(StorageUnavailable("redis take failed")).post("/token")
    assert resp.status_code == 503
    assert resp.json()["error"] == "temporarily_unavailable"
    assert resp.headers["retry-after"] == "1"
    assert "redis take failed" in caplog.text


def test_issuance_failure_is_server_error() -> None:
    resp = _app_raising(CodeIssuanceError("5 collisions")).post("/token")
    assert resp.status_code == 500
    assert resp.json() == {
        "error": "server_error",
        "error_description": "internal error",
    }


def test_error_body_never_echoes_message() -> None:
    body = oauth_error_body(InvalidGrant("code abc123 for client x"))
    assert "abc123" not in body["error_description"]
