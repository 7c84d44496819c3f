"""Tests for app wiring: health, dashboard, error rendering, outside-service adapters."""

from urllib.parse import parse_qs, urlparse

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from conftest import auth_headers
from helioscribe.common.exceptions import ConflictError, register_exception_handlers
from helioscribe.domains.auth.google import GoogleOAuthClient, GoogleOAuthConfig
from helioscribe.domains.auth.mailer import password_reset_email, verification_email
from helioscribe.domains.auth.recaptcha import BotCheckResult, RecaptchaVerifier


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


class TestDashboard:

    @pytest.mark.asyncio
    async def test_profile_and_stats(self, client, make_user):
        user = await make_user(how_heard="Search Engine")
        resp = await client.get("/api/user/dashboard", headers=auth_headers(user.id))

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["howHeard"] == "Search Engine"
        assert data["stats"] == {
            "accountCreated": data["user"]["createdAt"],
            "lastLogin": None,
            "emailVerified": True,
        }

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        resp = await client.get("/api/user/dashboard")
        assert resp.status_code == 401


# ════════════════════════════════════════════════════════════════
# Error rendering
# ════════════════════════════════════════════════════════════════

class _Payload(BaseModel):
    name: str


def _error_app():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Already there", hint="rename")

    @app.post("/validate")
    async def validate(payload: _Payload):
        return payload

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return app


class TestErrorRendering:

    @pytest.mark.asyncio
    async def test_app_error(self):
        transport = ASGITransport(app=_error_app())
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/conflict")
        assert resp.status_code == 409
        assert resp.json() == {"success": False, "message": "Already there", "hint": "rename"}

    @pytest.mark.asyncio
    async def test_validation_is_400(self):
        transport = ASGITransport(app=_error_app())
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/validate", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "name"

    @pytest.mark.asyncio
    async def test_unhandled_is_generic_500(self, monkeypatch):
        from helioscribe.common.config import settings

        monkeypatch.setattr(settings, "environment", "production")
        transport = ASGITransport(app=_error_app(), raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/boom")
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Internal Server Error"}


# ════════════════════════════════════════════════════════════════
# Adapters
# ════════════════════════════════════════════════════════════════

class TestRecaptchaVerifier:

    @pytest.mark.asyncio
    async def test_disabled_passes(self):
        result = await RecaptchaVerifier(secret_key=None, enabled=False).verify(None)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_missing_token(self):
        result = await RecaptchaVerifier(secret_key="secret").verify(None)
        assert result.success is False

    @pytest.mark.asyncio
    async def test_missing_secret(self):
        result = await RecaptchaVerifier(secret_key=None).verify("token")
        assert result.success is False
        assert result.error == "reCAPTCHA configuration error"

    @pytest.mark.parametrize("codes, fragment", [
        (["invalid-input-secret"], "configuration error"),
        (["invalid-input-response"], "expired"),
        (["low-score"], "failed"),
    ])
    def test_user_messages(self, codes, fragment):
        assert fragment in BotCheckResult(success=False, error_codes=codes).user_message()


class TestGoogleOAuthClient:

    def test_authorization_url(self):
        client = GoogleOAuthClient(GoogleOAuthConfig("cid", "csecret", "http://api/cb/register"))
        url = urlparse(client.authorization_url(state="xyz"))
        params = {k: v[0] for k, v in parse_qs(url.query).items()}

        assert url.netloc == "accounts.google.com"
        assert params["client_id"] == "cid"
        assert params["redirect_uri"] == "http://api/cb/register"
        assert params["response_type"] == "code"
        assert params["scope"] == "openid email profile"
        assert params["state"] == "xyz"

    def test_configured(self):
        assert GoogleOAuthClient(GoogleOAuthConfig("cid", "csecret", "http://cb")).configured
        assert not GoogleOAuthClient(GoogleOAuthConfig("", "", "http://cb")).configured


class TestEmailTemplates:

    def test_verification(self):
        html = verification_email("Ada", "123456", 15)
        assert "Ada" in html
        assert "123456" in html
        assert "15 minutes" in html

    def test_first_name_is_escaped(self):
        html = verification_email("<b>Ada</b>", "123456", 15)
        assert "<b>Ada</b>" not in html
        assert "&lt;b&gt;Ada&lt;/b&gt;" in html

    def test_password_reset(self):
        html = password_reset_email("Ada", "654321", 15)
        assert "654321" in html
        assert "15 minutes" in html
