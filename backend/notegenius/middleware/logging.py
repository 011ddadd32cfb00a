"""
NoteGenius Backend — Request Logging Middleware
=================================================

What:  One access-log line per HTTP request: method, path, status, duration.
Why:   Enables monitoring and debugging with request-ID correlation, which
       uvicorn's own access log lacks.
How:   Times the downstream call and logs at a level chosen by status class.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, IP, request ID, user id when known
    ❌ Don't log: query strings (OAuth codes, redirect targets), request
       bodies (passwords, note content), cookies or Authorization headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notegenius.middleware.request_id import request_id_var

logger = logging.getLogger("notegenius.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Typical durations:
        - GET /health: 1-5ms
        - GET /api/notes: 20-150ms (identity provider lookup + query)
        - POST /api/summarize: 1000-5000ms (Gemini call dominates)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Health checks run every few seconds; logging them buries real traffic
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")
        user = getattr(request.state, "user", None)
        user_id = user.id if user is not None else "-"

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )

        return response
