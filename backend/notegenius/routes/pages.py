"""
NoteGenius Backend — Page Routes
==================================

What:  The three page entry points: landing (/), sign-in (/auth) and the
       dashboard (/dashboard).
Why:   SessionRedirectMiddleware decides who may see which page; these
       handlers return the data each page renders.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from notegenius import __version__
from notegenius.dependencies import get_current_user, get_user_db_session
from notegenius.middleware.session import safe_redirect_target
from notegenius.schemas.auth import AuthUser, DashboardResponse
from notegenius.services.note_service import note_service

router = APIRouter(tags=["Pages"])

OAUTH_PROVIDERS = ["google", "github"]


@router.get("/", summary="Landing page")
async def landing() -> dict:
    return {
        "name": "NoteGenius",
        "version": __version__,
        "tagline": "Take notes, get AI summaries.",
        "sign_in": "/auth",
    }


@router.get("/auth", summary="Sign-in page")
async def sign_in_page(redirect_to: Optional[str] = Query(default=None, alias="redirectTo")) -> dict:
    """Describes the sign-in options; reached only without a session."""
    target = safe_redirect_target(redirect_to)
    return {
        "password_sign_in": "/auth/signin",
        "sign_up": "/auth/signup",
        "oauth": {p: f"/auth/signin/{p}?redirect_to={target}" for p in OAUTH_PROVIDERS},
        "redirect_to": target,
    }


@router.get("/dashboard", response_model=DashboardResponse, summary="Dashboard data")
async def dashboard(
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> DashboardResponse:
    listing = await note_service.list_notes(db, user)
    return DashboardResponse(user=user, notes=listing.notes)
