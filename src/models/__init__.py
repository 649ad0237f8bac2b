"""
SQLAlchemy models for Calendar Actions.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

from src.models.base import Base, get_json_type
from src.models.tokens import UserToken

__all__ = [
    "Base",
    "get_json_type",
    "UserToken",
]
