"""
PeakStreak Backend: Application Package Initializer
====================================================

What: Marks the `peakstreak` directory as a Python package.
Who:  Imported by uvicorn (`peakstreak.main:app`), Alembic and pytest.

Architecture Note:
    The backend is layered so the hard part (profile aggregation and the
    habit/log rules) never touches HTTP or SQL directly:

    ┌─────────────────────────────────────┐
    │      Routes + Middleware (HTTP)     │  ← FastAPI, auth, status codes
    ├─────────────────────────────────────┤
    │       Services (Business Rules)     │  ← ownership, upserts, fan-out
    ├─────────────────────────────────────┤
    │    Gateway / BlobStore (Contracts)  │  ← abstract persistence + files
    ├─────────────────────────────────────┤
    │  SQLAlchemy Gateway / Local Blobs   │  ← concrete adapters
    └─────────────────────────────────────┘

    Services receive their gateway and blob store through the constructor,
    so each layer can be tested with an in-memory double.
"""

__version__ = "1.0.0"
