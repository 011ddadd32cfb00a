"""
NoteGenius Backend — Authentication Schemas
=============================================

What:  Request/response models for the /auth routes, plus the two shapes the
       identity provider hands back (user, session).
Why:   The provider's JSON carries many more fields than we use; parsing into
       small models keeps the rest of the code independent of that payload.
"""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from notegenius.schemas.note import NoteResponse


class AuthUser(BaseModel):
    """The only facts the application observes about a signed-in user."""
    id: str = Field(description="Identity-provider user id (UUID string)")
    email: Optional[str] = Field(default=None)

    model_config = {"extra": "ignore"}


class AuthSession(BaseModel):
    """Tokens issued by the identity provider after sign-in or code exchange."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = Field(default=3600, description="Access token lifetime in seconds")
    token_type: str = "bearer"
    user: AuthUser

    model_config = {"extra": "ignore"}


class SignUpRequest(BaseModel):
    email: EmailStr = Field(description="Account email address")
    password: str = Field(min_length=6, description="Password, at least 6 characters")


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    redirect_to: str = Field(
        default="/dashboard",
        description="Relative path to open after sign-in",
    )


class MessageResponse(BaseModel):
    message: str


class SignInResponse(BaseModel):
    """Returned by POST /auth/signin; session tokens travel in cookies."""
    user: AuthUser
    redirect_to: str


class SessionResponse(BaseModel):
    """GET /auth/session. Never an error: no session is a valid answer."""
    authenticated: bool
    user: Optional[AuthUser] = None


class DashboardResponse(BaseModel):
    """GET /dashboard: the signed-in user and their notes."""
    user: AuthUser
    notes: List[NoteResponse]
