"""
StripBooth Backend — Pydantic Request/Response Schemas
=======================================================

Schemas are separate from the SQLAlchemy models: the API contract can add
computed fields (printed summaries, draw results) and never exposes a
column the client shouldn't write.
"""
