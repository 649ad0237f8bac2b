"""
Credential record persisted per account.

The record is stored as a JSON blob by both token store backends.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from dateutil.parser import isoparse

from src.auth.exceptions import StoreCorrupt


@dataclass(frozen=True)
class CredentialRecord:
    """
    OAuth2 token set for one account.

    Attributes:
        account_id: Account the tokens belong to
        access_token: Bearer token sent to the Calendar API
        refresh_token: Long-lived token used to obtain new access tokens
        expiry: When the access token expires (None means unknown/non-expiring)
        scopes: Capabilities granted at consent
        token_type: Token type reported by the token endpoint
        updated_at: Set by the token store on every write
    """

    account_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    scopes: frozenset[str] = frozenset()
    token_type: str = "Bearer"
    updated_at: Optional[datetime] = field(default=None, compare=False)

    def is_stale(self, now: Optional[datetime] = None, margin: timedelta = timedelta(0)) -> bool:
        """Check if the access token expiry is not in the future."""
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expiry - margin

    def with_updated_at(self, updated_at: datetime) -> "CredentialRecord":
        return replace(self, updated_at=updated_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "scope": " ".join(sorted(self.scopes)),
            "token_type": self.token_type,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, account_id: str, data: Any) -> "CredentialRecord":
        """
        Parse a stored blob.

        Also accepts the legacy shape with ``expiry_date`` in epoch
        milliseconds.

        Raises:
            StoreCorrupt: If the blob is not a mapping or lacks an access token
        """
        if not isinstance(data, dict):
            raise StoreCorrupt(f"Stored credential for {account_id} is not an object")

        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise StoreCorrupt(f"Stored credential for {account_id} has no access token")

        try:
            expiry = _parse_instant(data.get("expiry"))
            if expiry is None and data.get("expiry_date") is not None:
                expiry = datetime.fromtimestamp(int(data["expiry_date"]) / 1000, tz=timezone.utc)
            updated_at = _parse_instant(data.get("updated_at"))
        except (TypeError, ValueError, OverflowError) as e:
            raise StoreCorrupt(
                f"Stored credential for {account_id} has an invalid timestamp: {e}",
                original_error=e,
            )

        scope = data.get("scope") or ""
        if isinstance(scope, (list, tuple)):
            scopes = frozenset(scope)
        else:
            scopes = frozenset(str(scope).split())

        return cls(
            account_id=account_id,
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expiry=expiry,
            scopes=scopes,
            token_type=data.get("token_type") or "Bearer",
            updated_at=updated_at,
        )


def _parse_instant(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    dt = isoparse(value) if isinstance(value, str) else value
    if not isinstance(dt, datetime):
        raise TypeError(f"Expected an ISO-8601 instant, got {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
