"""
NoteGenius Backend — Summarization Route
==========================================

What:  POST /api/summarize, a thin proxy from the browser to Gemini.
Why:   The Gemini API key must never reach the browser.
How:   Validates the body by hand, calls GeminiService, and answers with
       exactly one of {"summary": ...} or {"error": ...}.

Response contract:
    200 {"summary": "<trimmed text>"}
    400 {"error": "Text is required and must be a string"}
        body missing, not JSON, `text` absent, not a string, or empty
    500 {"error": "Failed to summarize text"}
        transport error, API error, blocked or malformed response, open breaker
    500 {"error": "<which setting is missing>"}
        GEMINI_API_KEY not configured

The body is parsed here rather than through a Pydantic parameter so that
FastAPI's 422 never replaces the 400 contract above.
"""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from notegenius.exceptions import ConfigurationError, SummarizationError
from notegenius.middleware.request_id import request_id_var
from notegenius.schemas.note import (
    SummarizeErrorResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from notegenius.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Summarize"])

TEXT_REQUIRED = "Text is required and must be a string"
SUMMARIZE_FAILED = "Failed to summarize text"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    responses={
        400: {"description": "Missing or invalid text", "model": SummarizeErrorResponse},
        500: {"description": "Summarization failed", "model": SummarizeErrorResponse},
    },
    summary="Summarize a block of text",
)
async def summarize(request: Request):
    try:
        body = await request.json()
        payload = SummarizeRequest.model_validate(body)
    except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError):
        return _error(400, TEXT_REQUIRED)

    try:
        summary = await gemini_service.summarize(payload.text)
    except ConfigurationError as e:
        logger.error("[%s] Summarize unavailable: %s", request_id_var.get(""), e.message)
        return _error(500, e.message)
    except SummarizationError as e:
        logger.error(
            "[%s] Error in summarize API: %s %s",
            request_id_var.get(""),
            e.message,
            e.context,
        )
        return _error(500, SUMMARIZE_FAILED)

    return SummarizeResponse(summary=summary)
