"""
NoteGenius Backend — Request ID Middleware
============================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   Ties together every log line of one request (note query, identity
       provider lookup, Gemini call) and lets users quote an ID from an
       error response.
How:   Reuses a client-sent X-Request-ID when it looks sane, otherwise
       generates one; stores it in a ContextVar and on request.state.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client IDs end up in log lines; keep them short and free of control characters
_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Accept a well-formed client X-Request-ID (frontend-generated)
        2. Otherwise generate an 8-char ID
        3. Store in ContextVar (loggers, handlers) and request.state (routes)
        4. Return it in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        client_rid = request.headers.get("X-Request-ID", "")
        rid = client_rid if _CLIENT_ID_PATTERN.match(client_rid) else new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
