"""
StripBooth Backend — Application Package Initializer
=====================================================

What: Order-management backend for a school photo booth.
Who:  Imported by uvicorn (stripbooth.main:app), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← allocation, lifecycle, raffle
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The cashier flow drives an order from intake through photo upload,
    editing, template packing, printing and delivery. Services own every
    state change; routes only translate HTTP to service calls.
"""

__version__ = "1.0.0"
