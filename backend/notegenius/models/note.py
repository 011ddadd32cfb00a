"""
NoteGenius Backend — Note SQLAlchemy Model
============================================

What:  ORM model representing the `notes` table in PostgreSQL.
Why:   Maps Python objects to database rows for type-safe database operations.
Who:   Used by NoteService for CRUD operations and by Alembic for schema management.

Table Design Rationale:
    - UUID primary key: Non-sequential, safe to expose in URLs
    - title / content: TEXT, never empty (checked before insert)
    - summary: NULL until the user attaches an AI summary
    - user_id: Owner's identity-provider user id; the row-level security
      policies compare it with auth.uid()
    - created_at / updated_at: UTC with timezone; updated_at moves on every mutation

    Index on (user_id, updated_at DESC):
        Serves the only listing query: "my notes, most recently edited first"
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Index, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from notegenius.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A user-owned text note with an optional AI summary.

    Lifecycle:
        1. Created by an explicit user action (summary usually empty)
        2. Edited: title/content/summary change, updated_at refreshed
        3. Summary attached: only summary + updated_at change
        4. Deleted: row removed (no soft delete)
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    summary: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="AI-generated summary of content, attached on request",
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="Refreshed on every mutation; listings sort by this column",
    )

    # What: Identity-provider user id of the owner
    # Why no FK in the ORM: the users table lives in the provider's `auth`
    # schema; the migration adds the FK where that schema exists
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_notes_user_updated_at", user_id, updated_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, user_id={self.user_id}, "
            f"updated_at='{self.updated_at}')>"
        )
