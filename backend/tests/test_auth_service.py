"""
NoteGenius Backend — Identity Provider Client Tests
=====================================================

What:  AuthService against an httpx.MockTransport playing the provider.

What we test:
    ✅ Requests hit the right endpoint with the apikey header
    ✅ Sessions and users are parsed from provider JSON
    ✅ Refresh tokens are traded for a new session
    ✅ Provider rejections map to ValidationError / AuthenticationError
    ✅ 401 on user lookup means "no session", not an error
    ✅ Transport errors retry on lookup only, then AuthProviderError
    ✅ Missing configuration fails before any request
"""

import base64
import hashlib
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from unittest.mock import patch

from notegenius.config import settings
from notegenius.exceptions import (
    AuthenticationError,
    AuthProviderError,
    ConfigurationError,
    ValidationError,
)
from notegenius.services.auth_service import (
    USER_LOOKUP_ATTEMPTS,
    AuthService,
    code_challenge_for,
    generate_code_verifier,
)

USER_ID = "6f1d2f0e-8c1b-4c57-9f43-2b7a0f7f1a11"
SESSION_JSON = {
    "access_token": "access-123",
    "refresh_token": "refresh-456",
    "expires_in": 3600,
    "token_type": "bearer",
    "user": {"id": USER_ID, "email": "ada@example.com", "role": "authenticated"},
}


class Provider:
    """Records requests and answers with a canned response."""

    def __init__(self, status_code=200, body=None, error: Exception = None):
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)

    def service(self) -> AuthService:
        return AuthService(transport=httpx.MockTransport(self))


class TestPkce:

    def test_verifier_length_within_rfc_bounds(self):
        verifier = generate_code_verifier()
        assert 43 <= len(verifier) <= 128

    def test_challenge_is_unpadded_s256(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        expected = base64.urlsafe_b64encode(
            hashlib.sha256(verifier.encode()).digest()
        ).rstrip(b"=").decode()
        assert code_challenge_for(verifier) == expected
        assert "=" not in code_challenge_for(verifier)


class TestSignInAndSignUp:

    @pytest.mark.asyncio
    async def test_password_sign_in_returns_session(self):
        provider = Provider(body=SESSION_JSON)

        session = await provider.service().sign_in_with_password("ada@example.com", "secret1")

        request = provider.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/auth/v1/token"
        assert request.url.params["grant_type"] == "password"
        assert request.headers["apikey"] == settings.supabase_anon_key
        assert json.loads(request.content) == {"email": "ada@example.com", "password": "secret1"}
        assert session.access_token == "access-123"
        assert session.user.id == USER_ID

    @pytest.mark.asyncio
    async def test_bad_credentials_carry_provider_message(self):
        provider = Provider(
            status_code=400,
            body={"error": "invalid_grant", "error_description": "Invalid login credentials"},
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.service().sign_in_with_password("ada@example.com", "wrong-pw")
        assert exc_info.value.message == "Invalid login credentials"

    @pytest.mark.asyncio
    async def test_sign_up_sends_redirect(self):
        provider = Provider(body={"id": USER_ID})

        await provider.service().sign_up(
            "ada@example.com", "secret1", email_redirect_to="https://app.test/auth/callback"
        )

        request = provider.requests[0]
        assert request.url.path == "/auth/v1/signup"
        assert request.url.params["redirect_to"] == "https://app.test/auth/callback"

    @pytest.mark.asyncio
    async def test_sign_up_rejection_is_validation_error(self):
        provider = Provider(status_code=422, body={"msg": "User already registered"})

        with pytest.raises(ValidationError) as exc_info:
            await provider.service().sign_up("ada@example.com", "secret1", "https://app.test/cb")
        assert exc_info.value.message == "User already registered"

    @pytest.mark.asyncio
    async def test_provider_outage_is_provider_error(self):
        provider = Provider(status_code=502, body={"message": "bad gateway"})

        with pytest.raises(AuthProviderError):
            await provider.service().sign_in_with_password("ada@example.com", "secret1")

    @pytest.mark.asyncio
    async def test_unconfigured_provider_fails_before_request(self):
        provider = Provider(body=SESSION_JSON)

        with patch.object(settings, "supabase_url", ""):
            with pytest.raises(ConfigurationError) as exc_info:
                await provider.service().sign_in_with_password("ada@example.com", "secret1")

        assert "SUPABASE_URL" in exc_info.value.message
        assert provider.requests == []


class TestOAuth:

    def test_authorize_url(self):
        url = urlparse(AuthService().oauth_authorize_url("github", "https://app.test/auth/callback", "chal"))
        query = parse_qs(url.query)

        assert url.path == "/auth/v1/authorize"
        assert query["provider"] == ["github"]
        assert query["redirect_to"] == ["https://app.test/auth/callback"]
        assert query["code_challenge"] == ["chal"]
        assert query["code_challenge_method"] == ["s256"]

    @pytest.mark.asyncio
    async def test_code_exchange(self):
        provider = Provider(body=SESSION_JSON)

        session = await provider.service().exchange_code_for_session("code-1", "verifier-1")

        request = provider.requests[0]
        assert request.url.params["grant_type"] == "pkce"
        assert json.loads(request.content) == {"auth_code": "code-1", "code_verifier": "verifier-1"}
        assert session.refresh_token == "refresh-456"

    @pytest.mark.asyncio
    async def test_expired_code_is_authentication_error(self):
        provider = Provider(status_code=400, body={"msg": "invalid flow state, no valid flow state found"})

        with pytest.raises(AuthenticationError):
            await provider.service().exchange_code_for_session("stale", "verifier-1")


class TestRefreshSession:

    @pytest.mark.asyncio
    async def test_refresh_token_grant(self):
        provider = Provider(body={**SESSION_JSON, "refresh_token": "refresh-789"})

        session = await provider.service().refresh_session("refresh-456")

        request = provider.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/auth/v1/token"
        assert request.url.params["grant_type"] == "refresh_token"
        assert json.loads(request.content) == {"refresh_token": "refresh-456"}
        assert session.refresh_token == "refresh-789"
        assert session.user.id == USER_ID

    @pytest.mark.asyncio
    async def test_used_refresh_token_is_authentication_error(self):
        provider = Provider(
            status_code=400,
            body={"error": "invalid_grant", "error_description": "Invalid Refresh Token: Already Used"},
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.service().refresh_session("refresh-456")
        assert exc_info.value.message == "Invalid Refresh Token: Already Used"

    @pytest.mark.asyncio
    async def test_refresh_transport_error_is_not_retried(self):
        provider = Provider(error=httpx.ConnectError("connection refused"))

        with pytest.raises(AuthProviderError):
            await provider.service().refresh_session("refresh-456")
        assert len(provider.requests) == 1


class TestGetUser:

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self):
        provider = Provider(body=SESSION_JSON["user"])

        user = await provider.service().get_user("access-123")

        assert user.id == USER_ID
        assert user.email == "ada@example.com"
        assert provider.requests[0].headers["Authorization"] == "Bearer access-123"

    @pytest.mark.asyncio
    async def test_no_token_means_no_user_without_request(self):
        provider = Provider(body=SESSION_JSON["user"])

        assert await provider.service().get_user(None) is None
        assert provider.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_rejected_token_means_no_user(self, status_code):
        provider = Provider(status_code=status_code, body={"msg": "invalid JWT"})

        assert await provider.service().get_user("expired") is None
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_transport_errors_retry_then_raise(self):
        provider = Provider(error=httpx.ConnectError("connection refused"))

        with pytest.raises(AuthProviderError):
            await provider.service().get_user("access-123")
        assert len(provider.requests) == USER_LOOKUP_ATTEMPTS

    @pytest.mark.asyncio
    async def test_sign_in_transport_error_is_not_retried(self):
        provider = Provider(error=httpx.ConnectError("connection refused"))

        with pytest.raises(AuthProviderError):
            await provider.service().sign_in_with_password("ada@example.com", "secret1")
        assert len(provider.requests) == 1


class TestSignOut:

    @pytest.mark.asyncio
    async def test_sign_out_posts_logout_with_token(self):
        provider = Provider(status_code=204, body={})

        await provider.service().sign_out("access-123")

        request = provider.requests[0]
        assert request.url.path == "/auth/v1/logout"
        assert request.headers["Authorization"] == "Bearer access-123"

    @pytest.mark.asyncio
    async def test_already_revoked_token_is_fine(self):
        provider = Provider(status_code=401, body={"msg": "invalid JWT"})

        await provider.service().sign_out("revoked")
