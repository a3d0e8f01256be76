"""
Tests for Authentication.

Covers:
- Password hashing
- Access/refresh token creation, decoding, revocation
- Reset token digests
- CSRF middleware
- Security headers middleware
- Auth endpoints: register, login, me, refresh, logout, password change and reset
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    generate_csrf_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from app.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware, SECURITY_HEADERS


class FakeRedis:
    """Just enough of the redis client for the revocation list."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def exists(self, key):
        return int(key in self.store)


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        uid = uuid.uuid4()
        token, jti = create_access_token(uid)
        payload = decode_access_token(token)
        assert payload["sub"] == str(uid)
        assert payload["type"] == "access"
        assert payload["jti"] == jti

    def test_expired_jwt_raises(self):
        token, _ = create_access_token(uuid.uuid4(), expires_delta=timedelta(seconds=-1))
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_tampered_jwt_raises(self):
        token, _ = create_access_token(uuid.uuid4())
        tampered = token[:-5] + "XXXXX"
        with pytest.raises(jwt.PyJWTError):
            decode_access_token(tampered)

    def test_refresh_token_is_not_an_access_token(self):
        refresh = create_refresh_token(uuid.uuid4())
        assert decode_refresh_token(refresh)["type"] == "refresh"
        with pytest.raises(jwt.PyJWTError):
            decode_access_token(refresh)

    def test_access_token_is_not_a_refresh_token(self):
        token, _ = create_access_token(uuid.uuid4())
        with pytest.raises(jwt.PyJWTError):
            decode_refresh_token(token)


# ---------------------------------------------------------------------------
# Unit Tests: CSRF / reset tokens
# ---------------------------------------------------------------------------

class TestRandomTokens:
    def test_generates_unique_csrf_tokens(self):
        t1 = generate_csrf_token()
        t2 = generate_csrf_token()
        assert t1 != t2
        assert len(t1) > 20

    def test_reset_token_digest(self):
        raw, digest = generate_reset_token()
        assert digest == hash_reset_token(raw)
        assert digest != raw
        assert len(digest) == 64


# ---------------------------------------------------------------------------
# Unit Tests: JWT Revocation (mocked Redis)
# ---------------------------------------------------------------------------

class TestJWTRevocation:
    async def test_revoke_and_check(self):
        mock_redis = AsyncMock()
        mock_redis.setex = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=1)

        with patch("app.core.auth.get_redis", return_value=mock_redis):
            from app.core.auth import revoke_jwt, is_jwt_revoked

            await revoke_jwt("test-jti-123", 3600)
            mock_redis.setex.assert_called_once_with("jwt:revoked:test-jti-123", 3600, "1")

            result = await is_jwt_revoked("test-jti-123")
            assert result is True

    async def test_no_redis_means_no_revocation(self):
        with patch("app.core.auth.get_redis", return_value=None):
            from app.core.auth import revoke_jwt, is_jwt_revoked

            await revoke_jwt("jti", 60)
            assert await is_jwt_revoked("jti") is False


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCSRFMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        @app.post("/test")
        async def post_test():
            return {"ok": True}

        return app

    def test_get_passes_without_csrf(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert resp.status_code == 200

    def test_post_with_bearer_skips_csrf(self):
        client = TestClient(self._make_app(), cookies={SESSION_COOKIE: "some-jwt"})
        resp = client.post("/test", headers={"Authorization": "Bearer some-jwt"})
        assert resp.status_code == 200

    def test_post_without_session_cookie_passes(self):
        """No session cookie = not a browser request, skip CSRF."""
        client = TestClient(self._make_app())
        resp = client.post("/test")
        assert resp.status_code == 200

    def test_post_with_session_but_no_csrf_fails(self):
        client = TestClient(self._make_app(), cookies={SESSION_COOKIE: "some-jwt"})
        resp = client.post("/test")
        assert resp.status_code == 403
        assert resp.json() == {"success": False, "message": "Invalid or missing CSRF token."}

    def test_post_with_matching_csrf_passes(self):
        csrf_token = "test-csrf-token"
        client = TestClient(
            self._make_app(),
            cookies={SESSION_COOKIE: "some-jwt", CSRF_COOKIE: csrf_token},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": csrf_token})
        assert resp.status_code == 200

    def test_post_with_mismatched_csrf_fails(self):
        client = TestClient(
            self._make_app(),
            cookies={SESSION_COOKIE: "some-jwt", CSRF_COOKIE: "token-a"},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": "token-b"})
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Integration Tests: Auth Endpoints
# ---------------------------------------------------------------------------

class TestRegisterAndLogin:
    async def test_register(self, client):
        resp = await client.post(
            "/auth/register",
            json={"name": "Dana", "email": "Dana@Example.com", "password": "secret123"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "dana@example.com"
        assert body["data"]["user"]["role"] == "user"
        assert body["data"]["token"]
        assert body["data"]["refresh_token"]
        assert SESSION_COOKIE in resp.cookies
        assert CSRF_COOKIE in resp.cookies

    async def test_duplicate_email(self, client, alice):
        resp = await client.post(
            "/auth/register",
            json={"name": "Alice Two", "email": "ALICE@example.com", "password": "secret123"},
        )
        assert resp.status_code == 409
        assert resp.json()["message"] == "User with this email already exists"

    async def test_short_password(self, client):
        resp = await client.post(
            "/auth/register",
            json={"name": "Shorty", "email": "short@example.com", "password": "abc"},
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "password"

    async def test_login(self, client, alice):
        resp = await client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "secret123"}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["id"] == str(alice.id)
        assert resp.json()["data"]["user"]["last_login"] is not None

    async def test_login_wrong_password(self, client, alice):
        resp = await client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "nope-nope"}
        )
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Invalid credentials"}

    async def test_login_unknown_email(self, client):
        resp = await client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": "secret123"}
        )
        assert resp.status_code == 401


class TestSession:
    async def test_me_with_bearer(self, client, alice):
        resp = await client.get("/auth/me", headers=alice.headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["email"] == "alice@example.com"

    async def test_me_with_cookie(self, client, alice):
        client.cookies.set(SESSION_COOKIE, alice.token)
        resp = await client.get("/auth/me")
        client.cookies.clear()
        assert resp.status_code == 200

    async def test_me_without_token(self, client):
        resp = await client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Not authorized to access this route"

    async def test_me_with_garbage_token(self, client):
        resp = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    async def test_cookie_post_needs_csrf(self, client, alice):
        client.cookies.set(SESSION_COOKIE, alice.token)
        resp = await client.post("/auth/logout")
        assert resp.status_code == 403

        client.cookies.set(CSRF_COOKIE, "csrf-value")
        resp = await client.post("/auth/logout", headers={"X-CSRF-Token": "csrf-value"})
        client.cookies.clear()
        assert resp.status_code == 200

    async def test_refresh(self, client, alice):
        resp = await client.post("/auth/refresh", json={"refresh_token": alice.refresh_token})
        assert resp.status_code == 200
        new_token = resp.json()["data"]["token"]
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {new_token}"})
        assert resp.status_code == 200

    async def test_refresh_rejects_access_token(self, client, alice):
        resp = await client.post("/auth/refresh", json={"refresh_token": alice.token})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid refresh token"

    async def test_logout_revokes_token(self, client, alice):
        fake = FakeRedis()
        with patch("app.core.auth.get_redis", return_value=fake):
            resp = await client.post("/auth/logout", headers=alice.headers)
            assert resp.status_code == 200
            assert resp.json()["message"] == "Logged out successfully"

            resp = await client.get("/auth/me", headers=alice.headers)
            assert resp.status_code == 401
            assert resp.json()["message"] == "Session has been revoked"


class TestPasswords:
    async def test_update_password(self, client, alice):
        resp = await client.put(
            "/auth/update-password",
            json={"current_password": "wrong-one", "new_password": "brand-new-pass"},
            headers=alice.headers,
        )
        assert resp.status_code == 401

        resp = await client.put(
            "/auth/update-password",
            json={"current_password": "secret123", "new_password": "brand-new-pass"},
            headers=alice.headers,
        )
        assert resp.status_code == 200
        client.cookies.clear()

        resp = await client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "brand-new-pass"}
        )
        assert resp.status_code == 200

    async def test_reset_flow(self, client, alice):
        resp = await client.post("/auth/forgot-password", json={"email": "alice@example.com"})
        assert resp.status_code == 200
        token = resp.json()["data"]["reset_token"]
        assert token

        resp = await client.post(f"/auth/reset-password/{token}", json={"password": "reset-pass-1"})
        assert resp.status_code == 200
        client.cookies.clear()

        resp = await client.post(f"/auth/reset-password/{token}", json={"password": "reset-pass-2"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid or expired reset token"

        resp = await client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "reset-pass-1"}
        )
        assert resp.status_code == 200

    async def test_forgot_unknown_email(self, client):
        resp = await client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
        assert resp.status_code == 404

    async def test_reset_with_bad_token(self, client, alice):
        resp = await client.post("/auth/reset-password/deadbeef", json={"password": "whatever1"})
        assert resp.status_code == 400
