"""Test doubles and record factories shared across the test suite."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.auth.credentials import CredentialRecord
from src.auth.exceptions import RefreshFailed
from src.auth.google_oauth import OAuthTokens
from src.auth.token_storage import _next_timestamp
from src.config import OAuthClientConfig

ACCOUNT_ID = "default"


def make_record(
    access_token: str = "access-1",
    refresh_token: Optional[str] = "refresh-1",
    expires_in: Optional[timedelta] = timedelta(hours=1),
    account_id: str = ACCOUNT_ID,
) -> CredentialRecord:
    """Build a credential expiring `expires_in` from now (negative for stale)."""
    expiry = datetime.now(timezone.utc) + expires_in if expires_in is not None else None
    return CredentialRecord(
        account_id=account_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expiry=expiry,
        scopes=frozenset({"https://www.googleapis.com/auth/calendar"}),
    )


class InMemoryTokenStore:
    """TokenStore double that counts reads and writes."""

    backend = "memory"

    def __init__(self, records: Optional[dict[str, CredentialRecord]] = None):
        self.records = dict(records or {})
        self.reads = 0
        self.writes = 0
        self.closed = False

    async def ensure_schema(self) -> None:
        return None

    async def get(self, account_id: str) -> Optional[CredentialRecord]:
        self.reads += 1
        return self.records.get(account_id)

    async def upsert(self, account_id: str, record: CredentialRecord) -> CredentialRecord:
        self.writes += 1
        previous = self.records.get(account_id)
        stored = record.with_updated_at(_next_timestamp(previous.updated_at if previous else None))
        self.records[account_id] = stored
        return stored

    async def close(self) -> None:
        self.closed = True


class StubOAuthFlow:
    """OAuth flow double that counts token endpoint calls."""

    def __init__(
        self,
        config: OAuthClientConfig,
        access_token: str = "refreshed-access",
        delay: float = 0.05,
        fail: bool = False,
    ):
        self.config = config
        self.access_token = access_token
        self.delay = delay
        self.fail = fail
        self.refresh_calls = 0
        self.exchanged_codes: list[str] = []

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        self.refresh_calls += 1
        await asyncio.sleep(self.delay)
        if self.fail:
            raise RefreshFailed("invalid_grant")
        return OAuthTokens(
            access_token=self.access_token,
            refresh_token=refresh_token,
            expires_in=3600,
            token_type="Bearer",
            scope="",
        )

    async def exchange_code(self, code: str) -> OAuthTokens:
        self.exchanged_codes.append(code)
        return OAuthTokens(
            access_token="exchanged-access",
            refresh_token=None,
            expires_in=3600,
            token_type="Bearer",
            scope="https://www.googleapis.com/auth/calendar",
        )

    def get_authorization_url(self, state: str) -> str:
        return f"https://accounts.google.com/o/oauth2/v2/auth?state={state}"
