# Middleware package init
"""
NoteGenius Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [Session Redirect] → [CORS] → Route

    1. Rate Limit FIRST: Reject abusive requests before any processing
    2. Request ID: Generate correlation ID for logging and tracing
    3. Logging: Log request details, including redirects issued below it
    4. Session Redirect: Page-level redirects based on session presence
    5. CORS: Applied by FastAPI's CORSMiddleware (handles preflight)
"""
