"""
detector_gateway.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories for the backing store.
"""

# Package marker.
