"""
NoteGenius Backend — Session Redirect Middleware
==================================================

What:  Redirects page requests based on whether a valid session exists.
Why:   Signed-out users must not land on the dashboard, and signed-in users
       have no reason to see the landing or sign-in page.
How:   For GET requests to page paths only, asks the identity provider
       (via resolve_user) whether the request carries a valid session.

Rules:
    /auth/callback          never intercepted (the OAuth flow is still in progress)
    /dashboard*, no session → 302 /auth?redirectTo=<path>
    / or /auth, session     → 302 <redirectTo query param, if a local path> or /dashboard
    anything else           → passed through untouched

Every response, redirects included, also carries the cookies of a session
renewed from the refresh token while the request was handled (by this
middleware or by a route dependency).

Session presence is decided by the provider alone; cookie names are never
used as a stand-in for a validated session.
"""

import logging
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from notegenius.dependencies import resolve_user, sync_session_cookies
from notegenius.exceptions import AuthProviderError, ConfigurationError
from notegenius.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

DEFAULT_AFTER_SIGN_IN = "/dashboard"


def safe_redirect_target(target: str | None, default: str = DEFAULT_AFTER_SIGN_IN) -> str:
    """Only same-site absolute paths; `//evil.com` and full URLs fall back to default."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    return target


def _is_dashboard(path: str) -> bool:
    return path == "/dashboard" or path.startswith("/dashboard/")


class SessionRedirectMiddleware(BaseHTTPMiddleware):
    """Session-based page redirects and refreshed-session cookies; API routes answer 401 themselves."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await self._route(request, call_next)
        sync_session_cookies(request, response)
        return response

    async def _route(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if request.method != "GET" or path.startswith("/auth/callback"):
            return await call_next(request)

        is_dashboard = _is_dashboard(path)
        is_entry_page = path in ("/", "/auth")
        if not (is_dashboard or is_entry_page):
            return await call_next(request)

        try:
            user = await resolve_user(request)
        except (ConfigurationError, AuthProviderError) as e:
            # Raised inside middleware, these would bypass the app's exception handlers
            status = 500 if isinstance(e, ConfigurationError) else 503
            logger.error("Session check failed for %s: %s", path, e.message)
            return JSONResponse(
                status_code=status,
                content={
                    "error": "configuration_error" if status == 500 else "auth_provider_unavailable",
                    "message": e.message,
                    "request_id": request_id_var.get(""),
                },
            )

        if user is None and is_dashboard:
            target = f"/auth?{urlencode({'redirectTo': path})}"
            logger.info("Unauthenticated request to %s, redirecting to sign-in", path)
            return RedirectResponse(target, status_code=302)

        if user is not None and is_entry_page:
            target = safe_redirect_target(request.query_params.get("redirectTo"))
            logger.info("Signed-in user on %s, redirecting to %s", path, target)
            return RedirectResponse(target, status_code=302)

        return await call_next(request)
