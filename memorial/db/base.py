# memorial/db/base.py
"""
SQLAlchemy declarative base and re-exports of the session components.
"""
from sqlalchemy.orm import DeclarativeBase


# ─────────────────────────────────────────────────────────────────────────────
# Declarative Base for ORM Models
# ─────────────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


from memorial.db.session import (  # noqa: E402
    engine,
    AsyncSessionLocal,
    get_db,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionLocal",
    "get_db",
]
