"""
PetMatch Backend - Application Package Initializer
==================================================

What: Marks the `app` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows the same layered structure throughout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, actor extraction
    ├─────────────────────────────────────┤
    │   Services (Lifecycle & Registration)│ ← Transition graph, permissions, side effects
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch the ORM directly; every state change goes through a
    service so the adoption and activity invariants have a single owner.
"""

__version__ = "1.0.0"
