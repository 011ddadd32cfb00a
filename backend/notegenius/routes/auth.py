"""
NoteGenius Backend — Authentication Routes
============================================

What:  Sign-up, sign-in (password and OAuth), OAuth callback, sign-out and
       session inspection.
Why:   The browser never talks to the identity provider with tokens it can
       read; sessions live in HTTP-only cookies set here.
How:   Each route is a thin wrapper over AuthService plus cookie handling.

OAuth flow (PKCE):
    1. GET /auth/signin/{provider}   verifier + target stored in short-lived
                                     cookies, 302 to the provider
    2. provider → GET /auth/callback?code=...
    3. code + verifier exchanged for a session, cookies set, HTML page
       forwards the browser to the stored target
"""

import html
import json
import logging
from typing import Optional

from fastapi import APIRouter, Path, Query, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse

from notegenius.config import settings
from notegenius.dependencies import (
    access_token_from,
    clear_session_cookies,
    resolve_user,
    set_session_cookies,
)
from notegenius.exceptions import AuthenticationError, AuthProviderError, ConfigurationError
from notegenius.middleware.session import safe_redirect_target
from notegenius.schemas.auth import (
    MessageResponse,
    SessionResponse,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
)
from notegenius.schemas.note import ErrorResponse
from notegenius.services.auth_service import (
    auth_service,
    code_challenge_for,
    generate_code_verifier,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

PKCE_COOKIE = "ng-pkce-verifier"
REDIRECT_COOKIE = "ng-redirect-to"

# Long enough to finish a provider consent screen
OAUTH_COOKIE_MAX_AGE = 600

CALLBACK_PATH = "/auth/callback"


def _callback_url() -> str:
    return settings.site_url + CALLBACK_PATH


def _set_flow_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        name,
        value,
        max_age=OAUTH_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path=CALLBACK_PATH,
    )


# ── Pages returned by the callback ────────────────────────────────────────

_SUCCESS_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta http-equiv="refresh" content="1;url={target_attr}">
  <title>NoteGenius</title>
</head>
<body>
  <p>Authentication successful! Redirecting...</p>
  <script>setTimeout(function () {{ window.location.replace({target_js}); }}, 500);</script>
</body>
</html>
"""

_ERROR_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>NoteGenius: Authentication error</title>
</head>
<body>
  <h1>Authentication Error</h1>
  <p>{message}</p>
  <a href="/auth">Return to sign in</a>
</body>
</html>
"""


def success_page(target: str) -> str:
    return _SUCCESS_PAGE.format(
        target_attr=html.escape(target, quote=True),
        target_js=json.dumps(target).replace("<", "\\u003c"),
    )


def error_page(message: str) -> str:
    return _ERROR_PAGE.format(message=html.escape(message))


# ── Routes ────────────────────────────────────────────────────────────────

@router.post(
    "/signup",
    status_code=201,
    response_model=MessageResponse,
    responses={400: {"description": "Sign-up rejected", "model": ErrorResponse}},
    summary="Create an account",
)
async def sign_up(data: SignUpRequest) -> MessageResponse:
    """The provider sends a confirmation email whose link lands on /auth/callback."""
    await auth_service.sign_up(data.email, data.password, email_redirect_to=_callback_url())
    return MessageResponse(message="Check your email for the confirmation link!")


@router.post(
    "/signin",
    response_model=SignInResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Sign in with email and password",
)
async def sign_in(data: SignInRequest, response: Response) -> SignInResponse:
    session = await auth_service.sign_in_with_password(data.email, data.password)
    set_session_cookies(response, session)
    return SignInResponse(user=session.user, redirect_to=safe_redirect_target(data.redirect_to))


@router.get(
    "/signin/{provider}",
    status_code=302,
    summary="Start OAuth sign-in with a provider",
)
async def sign_in_with_provider(
    provider: str = Path(pattern=r"^[a-z0-9_-]{2,32}$", description="e.g. google, github"),
    redirect_to: Optional[str] = Query(default=None),
) -> RedirectResponse:
    verifier = generate_code_verifier()
    url = auth_service.oauth_authorize_url(
        provider,
        redirect_to=_callback_url(),
        code_challenge=code_challenge_for(verifier),
    )
    response = RedirectResponse(url, status_code=302)
    _set_flow_cookie(response, PKCE_COOKIE, verifier)
    _set_flow_cookie(response, REDIRECT_COOKIE, safe_redirect_target(redirect_to))
    logger.info("OAuth sign-in started with provider %s", provider)
    return response


@router.get(
    "/callback",
    name="oauth_callback",
    response_class=HTMLResponse,
    summary="OAuth / email confirmation landing page",
)
async def oauth_callback(
    request: Request,
    code: Optional[str] = Query(default=None),
) -> Response:
    """
    Exchanges the authorization code for a session.

    No code → back to /auth. A rejected or expired code → 400 error page.
    """
    if not code:
        return RedirectResponse("/auth", status_code=302)

    verifier = request.cookies.get(PKCE_COOKIE)
    if not verifier:
        logger.warning("OAuth callback without a PKCE verifier cookie")
        return HTMLResponse(
            error_page("Your sign-in attempt expired. Please try again."),
            status_code=400,
        )

    try:
        session = await auth_service.exchange_code_for_session(code, verifier)
    except AuthenticationError as e:
        return HTMLResponse(error_page(e.message), status_code=400)

    target = safe_redirect_target(request.cookies.get(REDIRECT_COOKIE))
    response = HTMLResponse(success_page(target))
    set_session_cookies(response, session)
    response.delete_cookie(PKCE_COOKIE, path=CALLBACK_PATH)
    response.delete_cookie(REDIRECT_COOKIE, path=CALLBACK_PATH)
    return response


@router.post(
    "/signout",
    status_code=303,
    summary="Sign out and clear the session",
)
async def sign_out(request: Request) -> RedirectResponse:
    """
    Revokes the session at the provider when possible; cookies are cleared
    either way so the browser ends up signed out.
    """
    token = access_token_from(request)
    if token:
        try:
            await auth_service.sign_out(token)
        except (AuthProviderError, ConfigurationError) as e:
            logger.warning("Provider sign-out failed, clearing cookies anyway: %s", e.message)

    response = RedirectResponse("/", status_code=303)
    clear_session_cookies(response)
    return response


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session, if any",
)
async def get_session(request: Request, response: Response) -> SessionResponse:
    user = await resolve_user(request)
    response.headers["Cache-Control"] = "no-store"
    return SessionResponse(authenticated=user is not None, user=user)
