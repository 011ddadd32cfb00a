"""
NoteGenius Backend — Notes Route Handlers
===========================================

What:  CRUD for the signed-in user's notes, plus summary attachment.
Why:   The dashboard lists, creates, edits and deletes notes through these.
How:   Every route depends on get_current_user (401 without a session) and
       get_user_db_session (transaction under the user's row-level security),
       then delegates to NoteService. Bodies are validated by json_body(),
       declared first so a rejected body costs no provider or database call.

Endpoints:
    GET    /api/notes                 list, most recently updated first
    POST   /api/notes                 create → 201
    GET    /api/notes/{id}            single note
    PATCH  /api/notes/{id}            partial update
    DELETE /api/notes/{id}            hard delete → 204
    PUT    /api/notes/{id}/summary    attach a summary produced elsewhere
    POST   /api/notes/{id}/summary    summarize stored content with Gemini and attach

Caching:
    Notes are private and mutable: `Cache-Control: private, no-cache` on reads.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from notegenius.dependencies import get_current_user, get_user_db_session, json_body
from notegenius.schemas.auth import AuthUser
from notegenius.schemas.note import (
    ErrorResponse,
    NoteCreate,
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
    SummaryAttach,
)
from notegenius.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notes"])

PRIVATE_NO_CACHE = "private, no-cache"

_COMMON_ERRORS = {
    401: {"description": "No valid session", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}
_NOTE_ERRORS = {
    **_COMMON_ERRORS,
    404: {"description": "Note not found", "model": ErrorResponse},
}


def _body_schema(model) -> dict:
    """OpenAPI request body for routes that validate it through json_body()."""
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses=_COMMON_ERRORS,
    summary="List the signed-in user's notes",
)
async def list_notes(
    response: Response,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> NoteListResponse:
    """
    Returns every note the user owns, ordered by updated_at descending.

    A database that has not been migrated yet answers with an empty list,
    so a fresh project shows an empty dashboard instead of an error.
    """
    result = await note_service.list_notes(db, user)
    response.headers["X-Total-Count"] = str(result.total_count)
    response.headers["Cache-Control"] = PRIVATE_NO_CACHE
    return result


@router.post(
    "/notes",
    status_code=201,
    response_model=NoteResponse,
    responses={**_COMMON_ERRORS, 400: {"description": "Empty title or content", "model": ErrorResponse}},
    summary="Create a note",
    openapi_extra=_body_schema(NoteCreate),
)
async def create_note(
    data: NoteCreate = Depends(json_body(NoteCreate)),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> NoteResponse:
    return await note_service.create_note(db, user, data)


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses=_NOTE_ERRORS,
    summary="Get a single note",
)
async def get_note(
    note_id: UUID,
    response: Response,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> NoteResponse:
    note = await note_service.get_note(db, user, note_id)
    response.headers["Cache-Control"] = PRIVATE_NO_CACHE
    return note


@router.patch(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={**_NOTE_ERRORS, 400: {"description": "Invalid update", "model": ErrorResponse}},
    summary="Update a note",
    openapi_extra=_body_schema(NoteUpdate),
)
async def update_note(
    note_id: UUID,
    data: NoteUpdate = Depends(json_body(NoteUpdate)),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> NoteResponse:
    """Only fields present in the body change; updated_at is refreshed."""
    return await note_service.update_note(db, user, note_id, data)


@router.delete(
    "/notes/{note_id}",
    status_code=204,
    responses=_NOTE_ERRORS,
    summary="Delete a note",
)
async def delete_note(
    note_id: UUID,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> Response:
    await note_service.delete_note(db, user, note_id)
    return Response(status_code=204)


@router.put(
    "/notes/{note_id}/summary",
    response_model=NoteResponse,
    responses=_NOTE_ERRORS,
    summary="Attach a summary to a note",
    openapi_extra=_body_schema(SummaryAttach),
)
async def attach_summary(
    note_id: UUID,
    data: SummaryAttach = Depends(json_body(SummaryAttach)),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> NoteResponse:
    return await note_service.attach_summary(db, user, note_id, data.summary)


@router.post(
    "/notes/{note_id}/summary",
    response_model=NoteResponse,
    responses={
        **_NOTE_ERRORS,
        503: {"description": "Summarization unavailable", "model": ErrorResponse},
    },
    summary="Summarize a note's content and attach the result",
)
async def summarize_note(
    note_id: UUID,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_user_db_session),
) -> NoteResponse:
    """
    Sends the stored content to Gemini and saves the summary on the note.

    On failure the note is left as it was and the error handlers answer
    503 (Gemini) or 500 (missing API key).
    """
    return await note_service.summarize_note(db, user, note_id)
