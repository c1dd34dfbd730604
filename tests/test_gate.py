from dataclasses import replace
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from conftest import SECRET, login, register
from salesflow_crm.api.server import create_app
from salesflow_crm.auth.gate import is_public_path
from salesflow_crm.auth.security import issue_token


def _cleared(response, cookie_name: str = "auth_token") -> bool:
    headers = [v.lower() for v in response.headers.get_list("set-cookie")]
    return any(h.startswith(f"{cookie_name}=") and "max-age=0" in h for h in headers)


def test_public_paths():
    for path in ("/login", "/register", "/health", "/api/auth/login", "/api/auth/register", "/static/app.js", "/favicon.ico"):
        assert is_public_path(path), path
    for path in ("/", "/api/clients", "/api/clients/1", "/api/clients/2.0", "/api/profile", "/api/authx"):
        assert not is_public_path(path), path


def test_dotted_api_path_is_still_gated(client):
    r = client.get("/api/clients/2.0", headers={"Accept": "text/html"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"].startswith("/login?next=")

    client.cookies.set("auth_token", "garbage")
    r = client.get("/api/clients/2.0")
    assert r.status_code == 401
    assert r.json() == {"detail": "token_malformed"}
    assert _cleared(r)


def test_public_routes_bypass_gate(client):
    assert client.get("/health").json() == {"status": "ok"}
    r = client.post("/api/auth/login", json={"username": "nobody", "password": "x"})
    assert r.status_code == 401
    assert r.json() == {"detail": "invalid_credentials"}


def test_missing_token_api_call_gets_401(client):
    r = client.get("/api/clients")
    assert r.status_code == 401
    assert r.json() == {"detail": "missing_token"}
    assert r.headers["www-authenticate"] == "Bearer"
    assert not _cleared(r)


def test_missing_token_browser_navigation_redirects_to_login(client):
    r = client.get("/api/clients?page=2", headers={"Accept": "text/html"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"].startswith("/login?next=")
    assert "%2Fapi%2Fclients" in r.headers["location"]


def test_expired_cookie_is_cleared_and_rejected(client):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = issue_token(secret=SECRET, user_id=1, username="admin", role="admin", expires_minutes=60, now=past)
    client.cookies.set("auth_token", token)

    r = client.get("/api/clients")
    assert r.status_code == 401
    assert r.json() == {"detail": "token_expired"}
    assert _cleared(r)

    client.cookies.set("auth_token", token)
    r = client.get("/", headers={"Accept": "text/html"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"].startswith("/login")
    assert _cleared(r)


def test_foreign_signature_and_garbage_cookies(client):
    foreign = issue_token(secret="not-our-secret", user_id=1, username="admin", role="admin", expires_minutes=60)
    client.cookies.set("auth_token", foreign)
    r = client.get("/api/clients")
    assert r.json() == {"detail": "token_invalid"}
    assert _cleared(r)

    client.cookies.set("auth_token", "garbage")
    r = client.get("/api/clients")
    assert r.json() == {"detail": "token_malformed"}
    assert _cleared(r)


def test_valid_cookie_reaches_handler(client):
    assert register(client, "alice", "alice@x.com", "secret1").status_code == 201
    assert login(client, "alice", "secret1").status_code == 200

    r = client.get("/api/profile")
    assert r.status_code == 200
    assert r.json()["username"] == "alice"
    # Fresh token: nothing to refresh.
    assert "set-cookie" not in r.headers


def test_bearer_header_is_accepted(client):
    token = issue_token(secret=SECRET, user_id=1, username="admin", role="admin", expires_minutes=60)
    r = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200


def test_token_near_expiry_is_refreshed(client):
    # 60 minute token issued 50 minutes ago: 10 minutes left, under the 15 minute window.
    issued = datetime.now(timezone.utc) - timedelta(minutes=50)
    token = issue_token(secret=SECRET, user_id=1, username="admin", role="admin", expires_minutes=60, now=issued)
    client.cookies.set("auth_token", token)

    r = client.get("/api/users")
    assert r.status_code == 200
    refreshed = [v for v in r.headers.get_list("set-cookie") if v.startswith("auth_token=")]
    assert len(refreshed) == 1
    assert token not in refreshed[0]
    assert "max-age=3600" in refreshed[0].lower()


def test_redirect_api_calls_option(cfg):
    legacy = create_app(replace(cfg, AUTH_REDIRECT_API_CALLS=True))
    with TestClient(legacy) as c:
        r = c.get("/api/clients", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"].startswith("/login")
