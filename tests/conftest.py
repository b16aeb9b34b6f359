"""Shared fixtures: a temporary SQLite-backed store and API clients.

Each test gets its own database file, so tests never see each other's data.
"""

from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from medinova.api.server import create_app
from medinova.auth.users import ensure_admin
from medinova.config import Config
from medinova.store import DocumentStore


SECRET = "test-secret"
ADMIN_EMAIL = "admin@medinova.test"


def make_config(tmp_path, **overrides) -> Config:
    values = dict(
        DB_DSN=str(tmp_path / "medinova.sqlite"),
        AUTH_JWT_SECRET=SECRET,
        AUTH_TOKEN_EXPIRE_DAYS=30,
        AUTH_TOKEN_TRANSPORT="bearer",
        AUTH_COOKIE_NAME="token",
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_SECURE=False,
        CORS_ALLOW_ORIGINS="",
        STRIPE_SECRET_KEY="sk_test_dummy",
        PAYMENT_CURRENCY="usd",
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def cfg(tmp_path) -> Config:
    return make_config(tmp_path)


@pytest.fixture
def store(cfg) -> Iterator[DocumentStore]:
    s = DocumentStore(cfg.DB_DSN)
    s.open()
    yield s
    s.close()


@pytest.fixture
def client(cfg, store) -> Iterator[TestClient]:
    app = create_app(cfg, store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def cookie_client(tmp_path) -> Iterator[TestClient]:
    cookie_cfg = make_config(tmp_path, AUTH_TOKEN_TRANSPORT="cookie")
    app = create_app(cookie_cfg)
    with TestClient(app) as c:
        yield c


def bearer(client: TestClient, email: str) -> Dict[str, str]:
    r = client.post("/jwt", json={"email": email})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture
def admin_headers(client, store) -> Dict[str, str]:
    ensure_admin(store, ADMIN_EMAIL)
    return bearer(client, ADMIN_EMAIL)


@pytest.fixture
def user_headers(client) -> Dict[str, str]:
    r = client.post("/users", json={"email": "alice@example.com", "name": "Alice"})
    assert r.status_code == 200
    return bearer(client, "alice@example.com")
