"""
Base model definitions for SQLAlchemy.

Provides:
- Declarative base shared by all tables
- JSON column type that maps to JSONB on PostgreSQL
"""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeEngine


def get_json_type() -> TypeEngine:
    """
    Get database-appropriate JSON column type.

    Returns:
        JSONB on PostgreSQL (with indexing support)
        JSON elsewhere (basic JSON support)
    """
    return JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all models."""
