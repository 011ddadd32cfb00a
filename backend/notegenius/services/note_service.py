"""
NoteGenius Backend — Note Service (Data Access)
================================================

What:  List/get/create/update/delete for notes, plus attaching AI summaries.
Why:   Encapsulates ownership scoping, input rules and error translation in
       one place, independent of HTTP concerns.
How:   Every method receives the request's session (already scoped by
       row-level security) and the signed-in user resolved from the
       identity provider. Queries additionally filter on user_id.
Who:   Called by the notes and dashboard route handlers.

Failure Policy:
    - Invalid input             → ValidationError (raised before any query)
    - Missing or not-owned note → NotFoundError
    - "relation does not exist" on listing → empty list (first-time setup)
    - Any other database error  → DatabaseError (details logged only)

Listings are read from the database on every call; nothing is cached in
process memory.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notegenius.exceptions import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from notegenius.models.note import Note
from notegenius.schemas.auth import AuthUser
from notegenius.schemas.note import (
    NoteCreate,
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
)
from notegenius.services.gemini_service import gemini_service
from notegenius.services.llm_base import Summarizer

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for "relation does not exist"
UNDEFINED_TABLE = "42P01"


def _sqlstate(exc: Exception) -> Optional[str]:
    """SQLSTATE of a wrapped DBAPI error; drivers expose it under different names."""
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if isinstance(code, str):
            return code
    return None


def _owner_id(user: AuthUser) -> uuid.UUID:
    try:
        return uuid.UUID(user.id)
    except (TypeError, ValueError):
        raise AuthenticationError(
            message="Session user id is not valid",
            context={"user_id": user.id},
        )


def _require_text(value: Optional[str], field: str) -> None:
    if value is None or not value.strip():
        raise ValidationError(message=f"{field.capitalize()} is required", field=field)


class NoteService:
    """Business logic layer for note operations."""

    def __init__(self, summarizer: Summarizer = gemini_service):
        self.summarizer = summarizer

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_notes(self, db: AsyncSession, user: AuthUser) -> NoteListResponse:
        """
        The caller's notes, most recently updated first.

        Query plan:
            SELECT * FROM notes WHERE user_id = :uid ORDER BY updated_at DESC
            → idx_notes_user_updated_at
        """
        owner = _owner_id(user)
        try:
            result = await db.execute(
                select(Note)
                .where(Note.user_id == owner)
                .order_by(desc(Note.updated_at))
            )
            notes = [NoteResponse.model_validate(n) for n in result.scalars().all()]
        except SQLAlchemyError as e:
            if _sqlstate(e) == UNDEFINED_TABLE:
                logger.warning("Notes table does not exist yet, returning empty list")
                return NoteListResponse(notes=[], total_count=0)
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return NoteListResponse(notes=notes, total_count=len(notes))

    async def _get_owned(self, db: AsyncSession, owner: uuid.UUID, note_id: uuid.UUID) -> Note:
        try:
            result = await db.execute(
                select(Note).where(Note.id == note_id, Note.user_id == owner)
            )
            note = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": str(note_id)},
            )
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    async def get_note(self, db: AsyncSession, user: AuthUser, note_id: uuid.UUID) -> NoteResponse:
        note = await self._get_owned(db, _owner_id(user), note_id)
        return NoteResponse.model_validate(note)

    # ── Mutations ─────────────────────────────────────────────────────────

    async def create_note(self, db: AsyncSession, user: AuthUser, data: NoteCreate) -> NoteResponse:
        """
        Insert a note owned by `user`.

        Title and content are checked before anything touches the database.
        """
        _require_text(data.title, "title")
        _require_text(data.content, "content")
        owner = _owner_id(user)

        now = datetime.now(timezone.utc)
        note = Note(
            id=uuid.uuid4(),
            title=data.title,
            content=data.content,
            summary=data.summary or None,
            created_at=now,
            updated_at=now,
            user_id=owner,
        )
        try:
            db.add(note)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating note: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the note. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Note %s created", note.id)
        return NoteResponse.model_validate(note)

    async def update_note(
        self,
        db: AsyncSession,
        user: AuthUser,
        note_id: uuid.UUID,
        data: NoteUpdate,
    ) -> NoteResponse:
        """Apply the fields the client sent; updated_at always moves forward."""
        changes = data.changes()
        if not changes:
            raise ValidationError(message="Nothing to update")
        if "title" in changes:
            _require_text(changes["title"], "title")
        if "content" in changes:
            _require_text(changes["content"], "content")

        owner = _owner_id(user)
        note = await self._get_owned(db, owner, note_id)
        for field, value in changes.items():
            setattr(note, field, value)
        note.updated_at = datetime.now(timezone.utc)

        await self._flush(db, "update", note_id)
        logger.info("Note %s updated (%s)", note_id, ", ".join(sorted(changes)))
        return NoteResponse.model_validate(note)

    async def delete_note(self, db: AsyncSession, user: AuthUser, note_id: uuid.UUID) -> None:
        owner = _owner_id(user)
        note = await self._get_owned(db, owner, note_id)
        try:
            await db.delete(note)
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not delete the note. Please try again.",
                context={"note_id": str(note_id)},
            )
        await self._flush(db, "delete", note_id)
        logger.info("Note %s deleted", note_id)

    async def attach_summary(
        self,
        db: AsyncSession,
        user: AuthUser,
        note_id: uuid.UUID,
        summary: str,
    ) -> NoteResponse:
        """Set only the summary; title and content stay untouched."""
        owner = _owner_id(user)
        note = await self._get_owned(db, owner, note_id)
        return await self._store_summary(db, note, summary)

    async def summarize_note(self, db: AsyncSession, user: AuthUser, note_id: uuid.UUID) -> NoteResponse:
        """
        Summarize a stored note's content and attach the result.

        Raises whatever the summarizer raises (SummarizationError,
        ConfigurationError); the note is left unchanged in that case.
        """
        owner = _owner_id(user)
        note = await self._get_owned(db, owner, note_id)
        summary = await self.summarizer.summarize(note.content)
        return await self._store_summary(db, note, summary)

    async def _store_summary(
        self,
        db: AsyncSession,
        note: Note,
        summary: str,
    ) -> NoteResponse:
        note.summary = summary
        note.updated_at = datetime.now(timezone.utc)
        await self._flush(db, "summary", note.id)
        logger.info("Summary attached to note %s", note.id)
        return NoteResponse.model_validate(note)

    async def _flush(self, db: AsyncSession, action: str, note_id: uuid.UUID) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error on note %s (%s): %s", note_id, action, str(e))
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"note_id": str(note_id), "action": action},
            )


note_service = NoteService()
