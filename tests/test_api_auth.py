"""Token issuing, the verify -> authorize chain, and ownership checks over HTTP."""

import time

import jwt
import pytest

from conftest import ADMIN_EMAIL, SECRET, bearer

ADMIN_ONLY = [
    ("GET", "/users", None),
    ("GET", "/allusers", None),
    ("PATCH", "/users/admin/" + "a" * 24, None),
    ("PATCH", "/users/block/" + "a" * 24, None),
    ("PATCH", "/users/status/" + "a" * 24, {"status": "active"}),
    ("POST", "/tests", {"name": "CBC"}),
    ("DELETE", "/tests/" + "a" * 24, None),
    ("PATCH", "/tests/update/" + "a" * 24, {"name": "x"}),
    ("POST", "/banner", {"title": "x"}),
    ("GET", "/allbanners", None),
    ("DELETE", "/allbanners/" + "a" * 24, None),
    ("PATCH", "/allbanners/display/" + "a" * 24, None),
    ("GET", "/bookings", None),
    ("GET", "/reservation/abc", None),
]


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == "Hello MediNova"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "db": True}


def test_admin_check_without_user_record(client):
    headers = bearer(client, "a@x.com")
    r = client.get("/users/admin/a@x.com", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"admin": False}


def test_admin_check_for_admin(client, admin_headers):
    r = client.get(f"/users/admin/{ADMIN_EMAIL}", headers=admin_headers)
    assert r.json() == {"admin": True}


def test_admin_check_for_someone_else_forbidden(client, user_headers):
    r = client.get(f"/users/admin/{ADMIN_EMAIL}", headers=user_headers)
    assert r.status_code == 403
    assert r.json() == {"message": "forbidden access"}


def test_jwt_requires_email(client):
    r = client.post("/jwt", json={"name": "no email"})
    assert r.status_code == 400
    assert r.json() == {"message": "email_required"}


def test_jwt_without_secret_is_server_error(tmp_path):
    from fastapi.testclient import TestClient

    from conftest import make_config
    from medinova.api.server import create_app

    app = create_app(make_config(tmp_path, AUTH_JWT_SECRET=""))
    with TestClient(app) as c:
        r = c.post("/jwt", json={"email": "a@x.com"})
    assert r.status_code == 500
    assert r.json() == {"message": "server_misconfigured"}


@pytest.mark.parametrize("method,path,body", ADMIN_ONLY)
def test_admin_routes_reject_missing_token(client, method, path, body):
    r = client.request(method, path, json=body)
    assert r.status_code == 401
    assert r.json() == {"message": "unauthorized access"}
    assert r.headers.get("www-authenticate") == "Bearer"


@pytest.mark.parametrize("method,path,body", ADMIN_ONLY)
def test_admin_routes_reject_plain_users(client, user_headers, method, path, body):
    r = client.request(method, path, json=body, headers=user_headers)
    assert r.status_code == 403


@pytest.mark.parametrize("method,path,body", ADMIN_ONLY)
def test_admin_routes_reject_unknown_identities(client, method, path, body):
    r = client.request(method, path, json=body, headers=bearer(client, "stranger@x.com"))
    assert r.status_code == 403


def test_expired_token_rejected_before_handler(client, store):
    token = jwt.encode({"email": "a@x.com", "exp": int(time.time()) - 5}, SECRET, algorithm="HS256")
    r = client.post(
        "/bookings",
        json={"email": "a@x.com", "test_id": "t1"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert r.status_code == 401
    assert store.find("bookings") == []


def test_token_from_other_secret_rejected(client):
    token = jwt.encode({"email": "a@x.com"}, "wrong", algorithm="HS256")
    r = client.get("/users/admin/a@x.com", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_bearer_mode_ignores_cookie(client):
    r = client.post("/jwt", json={"email": "a@x.com"})
    token = r.json()["token"]
    client.cookies.set("token", token)
    r = client.get("/users/admin/a@x.com")
    assert r.status_code == 401


def test_demoted_admin_denied_on_next_request(client, store, admin_headers):
    assert client.get("/users", headers=admin_headers).status_code == 200
    admin = store.find_one("users", {"email": ADMIN_EMAIL})
    store.update_one("users", {"_id": admin["_id"]}, {"role": "user"})
    assert client.get("/users", headers=admin_headers).status_code == 403


def test_cookie_flow(cookie_client):
    r = cookie_client.post("/jwt", json={"email": "c@x.com"})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    set_cookie = r.headers["set-cookie"].lower()
    assert "token=" in set_cookie
    assert "httponly" in set_cookie

    # The client now carries the cookie.
    assert cookie_client.get("/users/admin/c@x.com").json() == {"admin": False}

    r = cookie_client.get("/logout")
    assert r.json() == {"success": True}
    assert cookie_client.get("/users/admin/c@x.com").status_code == 401


def test_cookie_mode_ignores_bearer_header(cookie_client):
    from medinova.auth.security import issue_token

    token = issue_token({"email": "c@x.com"}, secret=SECRET, expires_days=1)
    r = cookie_client.get("/users/admin/c@x.com", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert "www-authenticate" not in r.headers


def test_invalid_transport_refused(tmp_path):
    from conftest import make_config
    from medinova.api.server import create_app

    with pytest.raises(ValueError):
        create_app(make_config(tmp_path, AUTH_TOKEN_TRANSPORT="query"))
