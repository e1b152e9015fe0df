from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from authcode.main import app
from authcode.models.authorization_code import AuthorizationRequest
from authcode.models.oauth_client import Client
from authcode.models.user import User
from authcode.repos.auth_code_store import InMemoryAuthCodeStore
from authcode.services import authorization_code_service
from authcode.services.authorization_code_service import (
    AuthorizationCodeService,
)

# Ensure repo root is on sys.path so `import authcode` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

START = 1_700_000_000.0
TTL = 120

APP1 = Client(client_id="app1", redirect_uris=("https://app1.example/cb",))
APP2 = Client(client_id="app2", redirect_uris=("https://app2.example/cb",))
ALICE = User(id="alice", username="alice")


class FakeClock:
    """Controllable clock: tests move time instead of sleeping."""

    def __init__(self, start: float = START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(
    client_id: str = "app1",
    scopes: frozenset[str] = frozenset({"profile"}),
    **overrides,
) -> AuthorizationRequest:
    fields = {
        "client_id": client_id,
        "redirect_uri": f"https://{client_id}.example/cb",
        "scopes": scopes,
        "state": "xyz-anti-csrf",
    }
    fields.update(overrides)
    return AuthorizationRequest(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryAuthCodeStore:
    return InMemoryAuthCodeStore(clock=clock)


@pytest.fixture
def service(
    store: InMemoryAuthCodeStore, clock: FakeClock
) -> AuthorizationCodeService:
    return AuthorizationCodeService(store, ttl_seconds=TTL, clock=clock)


@pytest.fixture(autouse=True)
def reset_code_store() -> None:
    """Clear the process-wide in-memory store between tests."""
    store = authorization_code_service.code_store
    if hasattr(store, "_by_code_hash"):
        store._by_code_hash.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)
