"""
NoteGenius Backend — Routes Package
=====================================

Route Inventory:
    - summarize.py: POST /api/summarize              (Gemini proxy, {summary} | {error})
    - notes.py:     /api/notes, /api/notes/{id}      (note CRUD, summary attach)
    - auth.py:      /auth/signup, /auth/signin, /auth/signin/{provider},
                    /auth/callback, /auth/signout, /auth/session
    - pages.py:     GET /, GET /auth, GET /dashboard
    - health.py:    GET /health

Routes stay thin: read the request, call a service, shape the response.
Ownership and validation rules live in the services.
"""
