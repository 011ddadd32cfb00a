"""
NoteGenius Backend — Application Package Initializer
=====================================================

What: Marks the `notegenius` directory as a Python package.
Why:  Enables module imports like `from notegenius.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is layered the same way top to bottom:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Notes, Auth, Summary)   │  ← Scoping, validation, outbound calls
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async sessions with row-level security
    └─────────────────────────────────────┘

    Two collaborators live outside the process:
    - The identity provider owns sign-in, sign-up and sessions
    - Google Gemini produces note summaries
"""

__version__ = "1.0.0"
