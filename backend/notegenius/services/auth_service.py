"""
NoteGenius Backend — Identity Provider Client
===============================================

What:  Thin async client for the hosted identity provider's REST API
       (Supabase Auth / GoTrue, mounted at {SUPABASE_URL}/auth/v1).
Why:   Sign-up, sign-in, OAuth and session validation are owned by the
       provider; the application only forwards credentials and observes
       "who is this user" or "no valid session".
How:   httpx.AsyncClient with the public `apikey` header on every call and
       the user's access token as a Bearer header where the endpoint needs it.

Endpoints used:
    POST /auth/v1/signup                      → create account, sends confirmation email
    POST /auth/v1/token?grant_type=password   → email/password sign-in
    GET  /auth/v1/authorize?provider=...      → OAuth start (browser redirect, PKCE S256)
    POST /auth/v1/token?grant_type=pkce       → exchange OAuth code for a session
    POST /auth/v1/token?grant_type=refresh_token → renew an expired session
    GET  /auth/v1/user                        → validate access token, return user
    POST /auth/v1/logout                      → revoke the session

Retry Policy:
    Only the user lookup retries, and only on transport errors (connection
    reset, timeout). A provider answer of 401/403 means "no session" and is
    final. Every other call is a direct user action and is not retried.
"""

import base64
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from notegenius.config import settings
from notegenius.exceptions import AuthenticationError, AuthProviderError, ValidationError
from notegenius.schemas.auth import AuthSession, AuthUser

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"

# What: Attempts for the session lookup on transport errors
USER_LOOKUP_ATTEMPTS = 3


# ══════════════════════════════════════════════════════════════════════════
# PKCE Helpers
# ══════════════════════════════════════════════════════════════════════════

def generate_code_verifier() -> str:
    """Random 43-128 char URL-safe string (RFC 7636 §4.1)."""
    return secrets.token_urlsafe(64)[:96]


def code_challenge_for(verifier: str) -> str:
    """S256 challenge: BASE64URL(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _provider_message(response: httpx.Response, default: str) -> str:
    """The provider reports errors under several keys depending on the endpoint."""
    try:
        body = response.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    for key in ("error_description", "msg", "message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return default


class AuthService:
    """
    Identity provider operations used by the auth routes and session glue.

    Args:
        transport: Optional httpx transport; tests pass httpx.MockTransport.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    # ── HTTP plumbing ─────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.supabase_url + AUTH_PATH,
            headers={"apikey": settings.supabase_anon_key},
            timeout=settings.auth_timeout_seconds,
            transport=self._transport,
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        access_token: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        async with self._client() as client:
            return await client.request(method, path, params=params, json=json, headers=headers)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        One provider call with uniform failure translation.

        Raises:
            ConfigurationError: SUPABASE_URL / SUPABASE_ANON_KEY missing
            AuthProviderError:  transport error or 5xx answer
        """
        settings.require_identity_provider()
        try:
            response = await self._send(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error("Identity provider unreachable (%s %s): %s", method, path, str(e))
            raise AuthProviderError(context={"path": path, "error_type": type(e).__name__}) from e

        if response.status_code >= 500:
            logger.error(
                "Identity provider error %d on %s %s", response.status_code, method, path
            )
            raise AuthProviderError(context={"path": path, "status": response.status_code})
        return response

    # ── Account & session operations ──────────────────────────────────────

    async def sign_up(self, email: str, password: str, email_redirect_to: str) -> None:
        """Registers an account; the provider emails a confirmation link."""
        response = await self._request(
            "POST",
            "/signup",
            params={"redirect_to": email_redirect_to},
            json={"email": email, "password": password},
        )
        if response.is_error:
            message = _provider_message(response, "Error signing up")
            logger.warning("Sign-up rejected by provider: %s", message)
            raise ValidationError(message=message, field="email")
        logger.info("Sign-up accepted, confirmation email pending")

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.is_error:
            message = _provider_message(response, "Error signing in")
            logger.warning("Password sign-in rejected: %s", message)
            raise AuthenticationError(message=message)
        session = AuthSession.model_validate(response.json())
        logger.info("User %s signed in", session.user.id)
        return session

    def oauth_authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        """
        URL the browser is sent to for OAuth sign-in.

        The provider redirects back to `redirect_to` with `?code=...`, which
        exchange_code_for_session() turns into a session.
        """
        settings.require_identity_provider()
        query = urlencode({
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": code_challenge,
            "code_challenge_method": "s256",
        })
        return f"{settings.supabase_url}{AUTH_PATH}/authorize?{query}"

    async def exchange_code_for_session(self, code: str, code_verifier: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier},
        )
        if response.is_error:
            message = _provider_message(response, "Invalid or expired authorization code")
            logger.warning("OAuth code exchange rejected: %s", message)
            raise AuthenticationError(message=message)
        session = AuthSession.model_validate(response.json())
        logger.info("OAuth session established for user %s", session.user.id)
        return session

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        """
        Trade a refresh token for a new session.

        The provider rotates refresh tokens, so the returned session carries
        a new one that replaces the old cookie.

        Raises:
            AuthenticationError: refresh token revoked, expired or already used
        """
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if response.is_error:
            message = _provider_message(response, "Session expired, please sign in again")
            logger.info("Session refresh rejected: %s", message)
            raise AuthenticationError(message=message)
        session = AuthSession.model_validate(response.json())
        logger.info("Session refreshed for user %s", session.user.id)
        return session

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(USER_LOOKUP_ATTEMPTS),
        wait=wait_exponential_jitter(multiplier=0.3, max=2, jitter=0.1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _fetch_user(self, access_token: str) -> httpx.Response:
        return await self._send("GET", "/user", access_token=access_token)

    async def get_user(self, access_token: Optional[str]) -> Optional[AuthUser]:
        """
        Resolve the user behind an access token.

        Returns:
            AuthUser for a valid session; None for a missing, expired or
            revoked token (provider answers 401/403).

        Raises:
            ConfigurationError: provider not configured
            AuthProviderError:  provider unreachable after retries, or 5xx
        """
        settings.require_identity_provider()
        if not access_token:
            return None

        try:
            response = await self._fetch_user(access_token)
        except httpx.TransportError as e:
            logger.error("Session lookup failed after %d attempts: %s", USER_LOOKUP_ATTEMPTS, str(e))
            raise AuthProviderError(context={"path": "/user", "error_type": type(e).__name__}) from e

        if response.status_code in (401, 403):
            logger.debug("Access token rejected by provider (%d)", response.status_code)
            return None
        if response.status_code >= 500:
            raise AuthProviderError(context={"path": "/user", "status": response.status_code})
        if response.is_error:
            logger.warning("Unexpected session lookup status %d", response.status_code)
            return None
        return AuthUser.model_validate(response.json())

    async def sign_out(self, access_token: str) -> None:
        """Revokes the session at the provider. An already-invalid token is fine."""
        response = await self._request("POST", "/logout", access_token=access_token)
        if response.is_error and response.status_code not in (401, 403, 404):
            logger.warning("Provider sign-out returned %d", response.status_code)


auth_service = AuthService()
