"""
NoteGenius Backend — Note Service Unit Tests
==============================================

What:  NoteService with a mocked AsyncSession and a fake summarizer.

What we test:
    ✅ Listings are scoped to the owner and read fresh on every call
    ✅ A missing `notes` table lists as empty; other DB errors raise
    ✅ Empty title/content rejected before the database is touched
    ✅ Missing or foreign notes raise NotFoundError
    ✅ Summary attachment leaves title/content alone
"""

from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError

from notegenius.exceptions import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    SummarizationError,
    ValidationError,
)
from notegenius.schemas.auth import AuthUser
from notegenius.schemas.note import NoteCreate, NoteUpdate
from notegenius.services.note_service import NoteService


class _PgError(Exception):
    """Stands in for an asyncpg error carrying a SQLSTATE."""

    def __init__(self, sqlstate: str):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


def _compiled(statement) -> str:
    return str(statement.compile(compile_kwargs={"literal_binds": False}))


class TestListNotes:

    def setup_method(self):
        self.service = NoteService(summarizer=AsyncMock())

    @pytest.mark.asyncio
    async def test_returns_rows_and_count(self, mock_db_session, db_result, user, make_note):
        newer = make_note(user, title="Newer")
        older = make_note(user, title="Older", age_minutes=30)
        mock_db_session.execute.return_value = db_result(newer, older)

        result = await self.service.list_notes(mock_db_session, user)

        assert [n.title for n in result.notes] == ["Newer", "Older"]
        assert result.total_count == 2

    @pytest.mark.asyncio
    async def test_query_filters_by_owner_and_orders_by_updated_at(
        self, mock_db_session, db_result, user
    ):
        mock_db_session.execute.return_value = db_result()

        await self.service.list_notes(mock_db_session, user)

        statement = mock_db_session.execute.await_args.args[0]
        sql = _compiled(statement)
        assert "WHERE notes.user_id =" in sql
        assert "ORDER BY notes.updated_at DESC" in sql
        params = statement.compile().params
        assert UUID(user.id) in params.values()

    @pytest.mark.asyncio
    async def test_every_call_reads_the_database(self, mock_db_session, db_result, user, make_note):
        mock_db_session.execute.return_value = db_result(make_note(user))

        await self.service.list_notes(mock_db_session, user)
        await self.service.list_notes(mock_db_session, user)

        assert mock_db_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_listings_are_per_user(self, mock_db_session, db_result, user, other_user, make_note):
        mock_db_session.execute.side_effect = [
            db_result(make_note(user, title="mine")),
            db_result(make_note(other_user, title="theirs")),
        ]

        mine = await self.service.list_notes(mock_db_session, user)
        theirs = await self.service.list_notes(mock_db_session, other_user)

        assert [n.title for n in mine.notes] == ["mine"]
        assert [n.title for n in theirs.notes] == ["theirs"]

    @pytest.mark.asyncio
    async def test_missing_table_lists_empty(self, mock_db_session, user):
        mock_db_session.execute.side_effect = ProgrammingError(
            "SELECT ...", {}, _PgError("42P01")
        )

        result = await self.service.list_notes(mock_db_session, user)

        assert result.notes == []
        assert result.total_count == 0

    @pytest.mark.asyncio
    async def test_other_database_errors_raise(self, mock_db_session, user):
        mock_db_session.execute.side_effect = OperationalError(
            "SELECT ...", {}, _PgError("08006")
        )

        with pytest.raises(DatabaseError):
            await self.service.list_notes(mock_db_session, user)

    @pytest.mark.asyncio
    async def test_non_uuid_user_id_is_rejected(self, mock_db_session):
        with pytest.raises(AuthenticationError):
            await self.service.list_notes(mock_db_session, AuthUser(id="not-a-uuid"))
        mock_db_session.execute.assert_not_awaited()


class TestCreateNote:

    def setup_method(self):
        self.service = NoteService(summarizer=AsyncMock())

    @pytest.mark.asyncio
    async def test_creates_owned_note(self, mock_db_session, user):
        result = await self.service.create_note(
            mock_db_session, user, NoteCreate(title="Groceries", content="Eggs, milk")
        )

        added = mock_db_session.add.call_args.args[0]
        assert added.user_id == UUID(user.id)
        assert added.summary is None
        assert added.created_at == added.updated_at
        assert result.title == "Groceries"
        assert result.user_id == UUID(user.id)
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_keeps_provided_summary(self, mock_db_session, user):
        result = await self.service.create_note(
            mock_db_session, user, NoteCreate(title="T", content="C", summary="Short")
        )
        assert result.summary == "Short"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,content", [("   ", "Body"), ("Title", "\n\t ")])
    async def test_blank_fields_rejected_before_database(self, mock_db_session, user, title, content):
        with pytest.raises(ValidationError):
            await self.service.create_note(
                mock_db_session, user, NoteCreate.model_construct(title=title, content=content, summary=None)
            )
        mock_db_session.add.assert_not_called()
        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_note_appears_in_next_listing(self, mock_db_session, db_result, user, make_note):
        existing = make_note(user, title="Existing", age_minutes=5)
        mock_db_session.execute.return_value = db_result(existing)
        await self.service.list_notes(mock_db_session, user)

        created = await self.service.create_note(mock_db_session, user, NoteCreate(title="T", content="C"))
        mock_db_session.execute.return_value = db_result(mock_db_session.add.call_args.args[0], existing)
        listing = await self.service.list_notes(mock_db_session, user)

        assert [n.id for n in listing.notes] == [created.id, existing.id]


class TestGetUpdateDelete:

    def setup_method(self):
        self.service = NoteService(summarizer=AsyncMock())

    @pytest.mark.asyncio
    async def test_get_missing_note_raises(self, mock_db_session, db_result, user):
        mock_db_session.execute.return_value = db_result()

        with pytest.raises(NotFoundError):
            await self.service.get_note(mock_db_session, user, uuid4())

    @pytest.mark.asyncio
    async def test_lookup_is_scoped_by_id_and_owner(self, mock_db_session, db_result, user, make_note):
        note = make_note(user)
        mock_db_session.execute.return_value = db_result(note)

        await self.service.get_note(mock_db_session, user, note.id)

        sql = _compiled(mock_db_session.execute.await_args.args[0])
        assert "notes.id =" in sql
        assert "notes.user_id =" in sql

    @pytest.mark.asyncio
    async def test_update_changes_only_sent_fields(self, mock_db_session, db_result, user, make_note):
        note = make_note(user, title="Old", content="Keep me", age_minutes=10)
        before = note.updated_at
        mock_db_session.execute.return_value = db_result(note)

        result = await self.service.update_note(
            mock_db_session, user, note.id, NoteUpdate(title="New")
        )

        assert result.title == "New"
        assert result.content == "Keep me"
        assert result.updated_at > before
        assert result.created_at == note.created_at

    @pytest.mark.asyncio
    async def test_update_rejects_blank_title(self, mock_db_session, user):
        with pytest.raises(ValidationError):
            await self.service.update_note(
                mock_db_session, user, uuid4(), NoteUpdate.model_construct(title="  ")
            )
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_of_foreign_note_is_not_found(self, mock_db_session, db_result, user):
        # Owner-scoped query finds nothing for another user's note
        mock_db_session.execute.return_value = db_result()

        with pytest.raises(NotFoundError):
            await self.service.update_note(mock_db_session, user, uuid4(), NoteUpdate(title="x"))

    @pytest.mark.asyncio
    async def test_delete_removes_note(self, mock_db_session, db_result, user, make_note):
        note = make_note(user)
        mock_db_session.execute.return_value = db_result(note)

        await self.service.delete_note(mock_db_session, user, note.id)

        mock_db_session.delete.assert_awaited_once_with(note)
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_listing_during_uncommitted_delete_does_not_linger(
        self, mock_db_session, db_result, user, make_note
    ):
        note = make_note(user)
        mock_db_session.execute.side_effect = [
            db_result(note),   # lookup for delete
            db_result(note),   # concurrent listing before the delete commits
            db_result(),       # listing after the commit
        ]

        await self.service.delete_note(mock_db_session, user, note.id)
        during = await self.service.list_notes(mock_db_session, user)
        after = await self.service.list_notes(mock_db_session, user)

        assert [n.id for n in during.notes] == [note.id]
        assert after.notes == []
        assert mock_db_session.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_delete_missing_note_raises(self, mock_db_session, db_result, user):
        mock_db_session.execute.return_value = db_result()

        with pytest.raises(NotFoundError):
            await self.service.delete_note(mock_db_session, user, uuid4())
        mock_db_session.delete.assert_not_awaited()


class TestSummaries:

    @pytest.mark.asyncio
    async def test_attach_summary_only_touches_summary(self, mock_db_session, db_result, user, make_note):
        service = NoteService(summarizer=AsyncMock())
        note = make_note(user, title="T", content="C", age_minutes=5)
        before = note.updated_at
        mock_db_session.execute.return_value = db_result(note)

        result = await service.attach_summary(mock_db_session, user, note.id, "Short version")

        assert result.summary == "Short version"
        assert (result.title, result.content) == ("T", "C")
        assert result.updated_at > before

    @pytest.mark.asyncio
    async def test_summarize_note_sends_stored_content(self, mock_db_session, db_result, user, make_note):
        summarizer = AsyncMock()
        summarizer.summarize.return_value = "Gist"
        service = NoteService(summarizer=summarizer)
        note = make_note(user, content="Long meeting notes")
        mock_db_session.execute.return_value = db_result(note)

        result = await service.summarize_note(mock_db_session, user, note.id)

        summarizer.summarize.assert_awaited_once_with("Long meeting notes")
        assert result.summary == "Gist"

    @pytest.mark.asyncio
    async def test_failed_summary_leaves_note_unchanged(self, mock_db_session, db_result, user, make_note):
        summarizer = AsyncMock()
        summarizer.summarize.side_effect = SummarizationError()
        service = NoteService(summarizer=summarizer)
        note = make_note(user)
        mock_db_session.execute.return_value = db_result(note)

        with pytest.raises(SummarizationError):
            await service.summarize_note(mock_db_session, user, note.id)

        assert note.summary is None
        mock_db_session.flush.assert_not_awaited()
