# -*- coding: utf-8 -*-
"""接口测试：/api/auth 蓝图（Flask test client）。"""

import time

from flask import g
from redis.exceptions import ConnectionError as RedisConnectionError

from extensions.redis_client import get_cache
from middlewares.auth import jwt_required, require_roles
from utils.response import json_response

PASSWORD = "Granite!Falcon42"


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_then_login(client):
    resp = client.post("/api/auth/register", json={
        "email": "api.user@example.com",
        "password": "Copper#River57",
        "password_confirmation": "Copper#River57",
        "name": "Api",
    })
    assert resp.status_code == 201
    assert resp.get_json()["data"]["tokens"]["token_type"] == "bearer"

    resp = _login(client, "api.user@example.com", "Copper#River57")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["data"]["user"]["email"] == "api.user@example.com"
    assert "password_hash" not in body["data"]["user"]
    assert body["data"]["tokens"]["expires_in"] > 0


def test_register_validation(client, make_user):
    make_user(email="taken@example.com")

    assert client.post("/api/auth/register", json={"email": "x@example.com"}).status_code == 400
    assert client.post("/api/auth/register", json={"email": "not-an-email", "password": "Copper#River57"}).status_code == 400

    resp = client.post("/api/auth/register", json={"email": "weak@example.com", "password": "weak"})
    assert resp.status_code == 400
    assert resp.get_json()["error_code"] == "PASSWORD_POLICY_VIOLATION"
    assert resp.get_json()["data"]["errors"]

    resp = client.post("/api/auth/register", json={"email": "taken@example.com", "password": "Copper#River57"})
    assert resp.status_code == 409
    assert resp.get_json()["error_code"] == "EMAIL_TAKEN"


def test_login_failures_are_uniform(client, make_user):
    make_user(email="a@example.com")
    make_user(email="inactive@example.com", is_active=False)

    wrong = _login(client, "a@example.com", "Wrong!Pass42")
    unknown = _login(client, "nobody@example.com")
    inactive = _login(client, "inactive@example.com")

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json()["message"] == unknown.get_json()["message"]
    assert inactive.status_code == 401
    assert inactive.get_json()["error_code"] == "ACCOUNT_INACTIVE"
    assert _login(client, "", "").status_code == 400


def test_sixth_failed_login_is_rate_limited(client, make_user):
    make_user(email="brute@example.com")
    for _ in range(5):
        assert _login(client, "brute@example.com", "Wrong!Pass42").status_code == 401

    resp = _login(client, "brute@example.com", "Wrong!Pass42")

    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) > 0
    assert resp.get_json()["data"]["retry_after"] > 0
    assert resp.get_json()["error_code"] == "RATE_LIMIT_EXCEEDED"


def test_successful_login_clears_failures(client, make_user):
    make_user(email="oops@example.com")
    for _ in range(4):
        _login(client, "oops@example.com", "Wrong!Pass42")

    assert _login(client, "oops@example.com").status_code == 200
    for _ in range(5):
        assert _login(client, "oops@example.com", "Wrong!Pass42").status_code == 401


def test_current_user_and_expiry_headers(client, make_user):
    make_user(email="me@example.com")
    token = _login(client, "me@example.com").get_json()["data"]["tokens"]["access_token"]

    resp = client.get("/api/auth/user", headers=_bearer(token))

    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["email"] == "me@example.com"
    assert resp.get_json()["data"]["password_expiration"]["expired"] is False
    assert resp.headers["X-JWT-Expires-At"]
    assert "X-JWT-Refresh-Recommended" not in resp.headers
    assert "X-JWT-Expires-At" in resp.headers["Access-Control-Expose-Headers"]


def test_refresh_recommended_header(client, make_user, auth_service):
    user = make_user()
    token = auth_service.tokens.issue(user.id, ttl_minutes=5).token

    resp = client.get("/api/auth/user", headers=_bearer(token))

    assert resp.headers["X-JWT-Refresh-Recommended"] == "true"


def test_token_transport_variants(client, make_user, auth_service):
    user = make_user()
    token = auth_service.tokens.issue(user.id).token

    assert client.get("/api/auth/user", headers={"Authorization": f"bearer {token}"}).status_code == 200
    assert client.get(f"/api/auth/user?token={token}").status_code == 200
    resp = client.get("/api/auth/user")
    assert resp.status_code == 401
    assert resp.get_json()["error_code"] == "TOKEN_MISSING"
    assert "X-JWT-Expires-At" not in resp.headers


def test_invalid_and_expired_tokens(client, make_user, auth_service):
    user = make_user()
    expired = auth_service.tokens.issue(user.id, ttl_minutes=1, issued_at=int(time.time()) - 3600).token

    assert client.get("/api/auth/user", headers=_bearer("a.b.c")).get_json()["error_code"] == "TOKEN_INVALID"
    assert client.get("/api/auth/user", headers=_bearer(expired)).get_json()["error_code"] == "TOKEN_EXPIRED"


def test_logout_revokes_token_and_is_idempotent(client, make_user):
    make_user(email="bye@example.com")
    tokens = _login(client, "bye@example.com").get_json()["data"]["tokens"]
    headers = _bearer(tokens["access_token"])

    assert client.post("/api/auth/logout", headers=headers,
                       json={"refresh_token": tokens["refresh_token"]}).status_code == 200
    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.post("/api/auth/logout").status_code == 200

    resp = client.get("/api/auth/user", headers=headers)
    assert resp.status_code == 401
    assert resp.get_json()["error_code"] == "TOKEN_REVOKED"
    assert client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401


def test_logout_reports_failed_revocation(client, make_user, auth_service, monkeypatch):
    user = make_user()
    token = auth_service.tokens.issue(user.id).token

    def _down(*args, **kwargs):
        raise RedisConnectionError("cache down")

    monkeypatch.setattr(get_cache(), "set", _down)
    resp = client.post("/api/auth/logout", headers=_bearer(token))
    monkeypatch.undo()

    assert resp.status_code == 503
    assert resp.get_json()["error_code"] == "CACHE_UNAVAILABLE"
    # 未拉黑成功，令牌仍然有效，可重试
    assert client.get("/api/auth/user", headers=_bearer(token)).status_code == 200
    assert client.post("/api/auth/logout", headers=_bearer(token)).status_code == 200


def test_rate_limiter_outage_is_auth_failure(client, make_user, monkeypatch):
    make_user(email="limit.down@example.com")

    def _down(*args, **kwargs):
        raise RedisConnectionError("cache down")

    monkeypatch.setattr(get_cache(), "get", _down)
    resp = _login(client, "limit.down@example.com")

    assert resp.status_code == 401
    assert "cache" not in resp.get_json()["message"]


def test_refresh_and_validate(client, make_user):
    make_user(email="r@example.com")
    tokens = _login(client, "r@example.com").get_json()["data"]["tokens"]

    resp = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    new_tokens = resp.get_json()["data"]["tokens"]
    assert client.get("/api/auth/user", headers=_bearer(new_tokens["access_token"])).status_code == 200

    # 访问令牌不能用来刷新
    assert client.post("/api/auth/refresh", headers=_bearer(tokens["access_token"])).status_code == 401

    resp = client.post("/api/auth/validate", json={"token": new_tokens["access_token"]})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["type"] == "access"


def test_logout_all(client, make_user, auth_service):
    user = make_user()
    older = auth_service.tokens.issue_pair(user.id, issued_at=int(time.time()) - 10)
    current = auth_service.tokens.issue_pair(user.id, issued_at=int(time.time()) - 5)

    assert client.post("/api/auth/logout-all", headers=_bearer(current.access_token)).status_code == 200

    assert client.get("/api/auth/user", headers=_bearer(older.access_token)).status_code == 401
    assert client.get("/api/auth/user", headers=_bearer(current.access_token)).status_code == 401


def test_change_password_flow(client, make_user, auth_service):
    user = make_user(email="chg@example.com")
    old = auth_service.tokens.issue_pair(user.id, issued_at=int(time.time()) - 10)
    headers = _bearer(old.access_token)

    resp = client.post("/api/auth/change-password", headers=headers, json={
        "current_password": "Wrong!Pass42",
        "new_password": "Copper#River57",
    })
    assert resp.status_code == 400
    assert resp.get_json()["error_code"] == "WRONG_CURRENT_PASSWORD"

    resp = client.post("/api/auth/change-password", headers=headers, json={
        "current_password": PASSWORD,
        "new_password": "Copper#River57",
        "new_password_confirmation": "Mismatch#River57",
    })
    assert resp.status_code == 400
    assert resp.get_json()["error_code"] == "VALIDATION_ERROR"

    resp = client.post("/api/auth/change-password", headers=headers, json={
        "current_password": PASSWORD,
        "new_password": PASSWORD,
    })
    assert resp.get_json()["error_code"] == "PASSWORD_REUSED"

    resp = client.post("/api/auth/change-password", headers=headers, json={
        "current_password": PASSWORD,
        "new_password": "Copper#River57",
        "new_password_confirmation": "Copper#River57",
    })
    assert resp.status_code == 200
    fresh = resp.get_json()["data"]["tokens"]["access_token"]

    assert client.get("/api/auth/user", headers=headers).status_code == 401
    assert client.get("/api/auth/user", headers=_bearer(fresh)).status_code == 200
    assert _login(client, "chg@example.com", "Copper#River57").status_code == 200


def test_change_password_failures_are_limited(client, make_user, auth_service):
    user = make_user()
    headers = _bearer(auth_service.tokens.issue(user.id).token)
    payload = {"current_password": "Wrong!Pass42", "new_password": "Copper#River57"}

    for _ in range(5):
        assert client.post("/api/auth/change-password", headers=headers, json=payload).status_code == 400

    resp = client.post("/api/auth/change-password", headers=headers, json=payload)
    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) > 0


def test_password_policy_endpoints(client):
    policy = client.get("/api/auth/password-policy").get_json()["data"]
    assert policy["min_length"] == 8

    weak = client.post("/api/auth/password-strength", json={"password": "abc"}).get_json()["data"]
    strong = client.post("/api/auth/password-strength", json={"password": "Granite!Falcon42"}).get_json()["data"]
    assert weak["valid"] is False
    assert strong["valid"] is True
    assert strong["strength_score"] > weak["strength_score"]


def test_require_roles(app, client, make_user, auth_service):
    @app.get("/_test/admin-only")
    @jwt_required()
    @require_roles("admin")
    def _admin_only():
        return json_response(data={"id": g.current_user.id})

    admin = make_user(role="admin")
    member = make_user(role="user")

    resp = client.get("/_test/admin-only", headers=_bearer(auth_service.tokens.issue(admin.id).token))
    assert resp.status_code == 200
    resp = client.get("/_test/admin-only", headers=_bearer(auth_service.tokens.issue(member.id).token))
    assert resp.status_code == 403
    assert client.get("/_test/admin-only").status_code == 401


def test_unknown_route_uses_envelope(client):
    resp = client.get("/api/auth/nope")

    assert resp.status_code == 404
    assert resp.get_json()["code"] == 404
