"""
OAuth token storage model.

One row per account; the credential itself is a JSON blob so the table
matches the file backend's per-account object.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, get_json_type


class UserToken(Base):
    """
    Stores the OAuth credential for an account.

    Attributes:
        account_id: Account identifier (primary key)
        tokens: Serialized CredentialRecord
        updated_at: Time of the last write
    """

    __tablename__ = "user_tokens"

    account_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        doc="Account identifier the credential belongs to"
    )

    tokens: Mapped[dict[str, Any]] = mapped_column(
        get_json_type(),
        nullable=False,
        doc="Serialized credential (access/refresh token, expiry, scope)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        doc="When the credential was last written"
    )

    def __repr__(self) -> str:
        return f"<UserToken(account_id={self.account_id}, updated_at={self.updated_at})>"
