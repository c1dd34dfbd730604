import sys
from contextlib import ExitStack
from pathlib import Path as _Path

sys.path.insert(0, str(_Path(__file__).resolve().parents[1]))

import pytest
from fastapi.testclient import TestClient

from salesflow_crm.api.server import create_app
from salesflow_crm.config import Config

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-pass-1"
SECRET = "test-secret-please-ignore"


@pytest.fixture()
def cfg(tmp_path) -> Config:
    return Config(
        DB_DSN=str(tmp_path / "crm.sqlite"),
        AUTH_JWT_SECRET=SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        AUTH_TOKEN_REFRESH_MINUTES=15,
        AUTH_COOKIE_SECURE=False,
        AUTH_BOOTSTRAP_ADMIN_USERNAME=ADMIN_USERNAME,
        AUTH_BOOTSTRAP_ADMIN_EMAIL="admin@salesflow-crm.com",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=ADMIN_PASSWORD,
        AUTH_REDIRECT_API_CALLS=False,
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture()
def app(cfg):
    return create_app(cfg)


@pytest.fixture()
def make_client(app):
    """Factory for independent clients (separate cookie jars) on one app.

    Startup (schema + bootstrap admin) runs when the first client opens.
    """
    with ExitStack() as stack:

        def _make() -> TestClient:
            return stack.enter_context(TestClient(app))

        yield _make


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()


def register(client: TestClient, username: str, email: str, password: str):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )


def login(client: TestClient, username: str, password: str):
    return client.post("/api/auth/login", json={"username": username, "password": password})


@pytest.fixture()
def as_user(make_client):
    """Return a logged-in client for a freshly registered user."""

    def _as_user(username: str, password: str = "secret1") -> TestClient:
        c = make_client()
        r = register(c, username, f"{username}@crm-mail.com", password)
        assert r.status_code == 201, r.text
        r = login(c, username, password)
        assert r.status_code == 200, r.text
        return c

    return _as_user


@pytest.fixture()
def admin_client(make_client) -> TestClient:
    c = make_client()
    r = login(c, ADMIN_USERNAME, ADMIN_PASSWORD)
    assert r.status_code == 200, r.text
    return c


CLIENT_BODY = {
    "name": "Acme Corp",
    "email": "buyer@acme-corp.com",
    "phone": "5550001234",
    "requirements": "Needs a new roof",
    "priority": "1 month",
}
