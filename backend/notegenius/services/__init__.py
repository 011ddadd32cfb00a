# Services package init
"""
NoteGenius Backend — Services Layer
=====================================

What:  Business logic layer sitting between routes (HTTP) and the external
       collaborators (database, identity provider, Gemini).

Service Inventory:
    - Summarizer (abstract): Interface for AI summarization providers
    - GeminiService: Concrete summarizer using Google Gemini
    - AuthService: Identity provider client (sign-up/in/out, OAuth, session lookup)
    - NoteService: Owner-scoped note CRUD and summary attachment
"""
