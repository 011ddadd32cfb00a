"""Create notes table with row-level security

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates `notes` and the policies that restrict every row to its owner.
How:   On Supabase the `auth` schema exists: user_id references auth.users
       and the policies compare it with auth.uid(). On a plain PostgreSQL
       the table is created without the foreign key and policies.

Rollback: downgrade() drops the table and its policies (all notes are lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

POLICIES = {
    "notes_select_own": ("SELECT", "USING (auth.uid() = user_id)"),
    "notes_insert_own": ("INSERT", "WITH CHECK (auth.uid() = user_id)"),
    "notes_update_own": ("UPDATE", "USING (auth.uid() = user_id) WITH CHECK (auth.uid() = user_id)"),
    "notes_delete_own": ("DELETE", "USING (auth.uid() = user_id)"),
}


def _has_supabase_auth() -> bool:
    bind = op.get_bind()
    return bool(
        bind.execute(
            sa.text("SELECT to_regclass('auth.users') IS NOT NULL")
        ).scalar()
    )


def upgrade() -> None:
    supabase = _has_supabase_auth()

    columns = [
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True, comment="AI summary, attached on request"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("length(title) > 0", name="notes_title_not_empty"),
        sa.CheckConstraint("length(content) > 0", name="notes_content_not_empty"),
    ]
    if supabase:
        columns.append(
            sa.ForeignKeyConstraint(
                ["user_id"], ["auth.users.id"], ondelete="CASCADE", name="notes_user_id_fkey"
            )
        )

    op.create_table("notes", *columns)

    # Dashboard listing: WHERE user_id = ? ORDER BY updated_at DESC
    op.create_index(
        "idx_notes_user_updated_at",
        "notes",
        ["user_id", sa.text("updated_at DESC")],
    )

    if not supabase:
        return

    op.execute("ALTER TABLE notes ENABLE ROW LEVEL SECURITY")
    for name, (command, clause) in POLICIES.items():
        op.execute(f"CREATE POLICY {name} ON notes FOR {command} TO authenticated {clause}")
    op.execute("GRANT SELECT, INSERT, UPDATE, DELETE ON notes TO authenticated")


def downgrade() -> None:
    if _has_supabase_auth():
        for name in POLICIES:
            op.execute(f"DROP POLICY IF EXISTS {name} ON notes")
    op.drop_index("idx_notes_user_updated_at", table_name="notes")
    op.drop_table("notes")
