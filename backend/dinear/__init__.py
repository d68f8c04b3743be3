"""
dineAR Backend — Application Package Initializer
=================================================

What: Marks the `dinear` directory as a Python package.
Why:  Enables module imports like `from dinear.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is a layered CRUD service wrapped in an authorization pipeline:

    ┌─────────────────────────────────────┐
    │     Middleware (global guards)      │  ← Rate limit, request ID, access log
    ├─────────────────────────────────────┤
    │   Routes + Dependencies (API Layer) │  ← HTTP concerns, auth, per-route limits
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Credentials, tokens, uploads, dishes
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Every dish-mutating request passes the same ordered stages:
    rate limit → authenticate → validate → upload → exists → owns → commit.
    The first failing stage ends the request.
"""

__version__ = "1.0.0"
