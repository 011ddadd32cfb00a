"""
NoteGenius Backend — Request Dependencies (Session Glue)
==========================================================

What:  FastAPI dependencies that turn a request into "the signed-in user"
       and a database session scoped to that user.
Why:   One place decides session presence, so routes, the dashboard and the
       redirect middleware agree on who is signed in.
How:   The access token comes from `Authorization: Bearer ...` or the
       session cookie; the identity provider validates it. An expired access
       token is renewed from the refresh cookie. The result is memoized on
       request.state so a request asks the provider once.

Cookies:
    ng-access-token   provider access token (HTTP-only)
    ng-refresh-token  provider refresh token (HTTP-only), traded for a new
                      session when the access token has expired
"""

import json
import logging
from typing import AsyncGenerator, Awaitable, Callable, Optional, Type, TypeVar

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from notegenius.config import settings
from notegenius.database import apply_row_level_security, get_db_session
from notegenius.exceptions import AuthenticationError, ValidationError
from notegenius.schemas.auth import AuthSession, AuthUser
from notegenius.services.auth_service import auth_service

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "ng-access-token"
REFRESH_COOKIE = "ng-refresh-token"

# Refresh tokens outlive access tokens; a week matches the provider default
REFRESH_COOKIE_MAX_AGE = 7 * 24 * 3600

bearer = HTTPBearer(auto_error=False)


# ── Cookies ───────────────────────────────────────────────────────────────

def set_session_cookies(response: Response, session: AuthSession) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path="/",
    )
    if session.refresh_token:
        response.set_cookie(
            REFRESH_COOKIE,
            session.refresh_token,
            max_age=REFRESH_COOKIE_MAX_AGE,
            httponly=True,
            secure=settings.auth_cookie_secure,
            samesite="lax",
            path="/",
        )


def clear_session_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")


def access_token_from(request: Request) -> Optional[str]:
    """Bearer header wins over the cookie, so API clients can skip cookies."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return request.cookies.get(ACCESS_COOKIE)


# ── Request bodies ────────────────────────────────────────────────────────

BodyModel = TypeVar("BodyModel", bound=BaseModel)


def json_body(model: Type[BodyModel]) -> Callable[[Request], Awaitable[BodyModel]]:
    """
    Dependency that parses and validates the JSON body against `model`.

    FastAPI validates declared body parameters only after every dependency
    has run. Routes that list this ahead of get_current_user therefore reject
    a bad body before the identity provider or the database is contacted.

    Raises:
        ValidationError: body is not JSON or fails the model's rules (400)
    """
    async def parse(request: Request) -> BodyModel:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError(message="Request body must be valid JSON")

        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise ValidationError(message=errors[0]["message"], context={"errors": errors})

    return parse


# ── Current user ──────────────────────────────────────────────────────────

async def resolve_user(request: Request) -> Optional[AuthUser]:
    """
    The signed-in user for this request, or None.

    Memoized on request.state; the redirect middleware may already have
    resolved it for page requests.
    """
    if getattr(request.state, "auth_resolved", False):
        return request.state.user

    user = await auth_service.get_user(access_token_from(request))
    if user is None:
        user = await _refresh_session(request)
    request.state.user = user
    request.state.auth_resolved = True
    return user


async def _refresh_session(request: Request) -> Optional[AuthUser]:
    """
    Trade the refresh cookie for a new session when the access token is
    missing or expired.

    The new session is parked on request.state; SessionRedirectMiddleware
    writes it back as cookies once the response exists. A rejected refresh
    token marks the cookies for removal instead.
    """
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        return None

    try:
        session = await auth_service.refresh_session(refresh_token)
    except AuthenticationError as e:
        logger.info("Refresh token rejected, session ended: %s", e.message)
        request.state.session_expired = True
        return None

    request.state.refreshed_session = session
    return session.user


def sync_session_cookies(request: Request, response: Response) -> None:
    """Apply a refresh that happened while handling `request` to `response`."""
    session = getattr(request.state, "refreshed_session", None)
    if session is not None:
        set_session_cookies(response, session)
    elif getattr(request.state, "session_expired", False):
        clear_session_cookies(response)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[AuthUser]:
    # `credentials` only registers the Bearer scheme in OpenAPI; resolve_user reads the header itself
    return await resolve_user(request)


async def get_current_user(
    user: Optional[AuthUser] = Depends(get_optional_user),
) -> AuthUser:
    if user is None:
        raise AuthenticationError()
    return user


async def get_user_db_session(
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Database session whose transaction runs under the user's row-level security."""
    await apply_row_level_security(db, user.id)
    yield db
