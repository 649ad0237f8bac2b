"""
Credential freshness for Google API calls.

CredentialManager hands out credentials that are fresh (or best-effort
fresh) for an immediate provider call. Stale tokens are refreshed through
the OAuth flow and written back to the token store exactly once per refresh,
even when many requests for the same account notice staleness together.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from google.oauth2.credentials import Credentials

from src.auth.credentials import CredentialRecord
from src.auth.exceptions import RefreshFailed
from src.auth.google_oauth import GoogleOAuthFlow
from src.auth.token_storage import TokenStore
from src.config import OAuthClientConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsableCredential:
    """A credential record bound to the OAuth client identity."""

    record: CredentialRecord
    client_config: OAuthClientConfig

    @property
    def account_id(self) -> str:
        return self.record.account_id

    @property
    def access_token(self) -> str:
        return self.record.access_token

    def google_credentials(self) -> Credentials:
        """
        Credentials for googleapiclient.

        The refresh token and expiry are withheld so the SDK never refreshes
        behind the token store; an expired token surfaces as a 401.
        """
        return Credentials(
            token=self.record.access_token,
            token_uri=self.client_config.token_uri,
            client_id=self.client_config.client_id,
            client_secret=self.client_config.client_secret,
            scopes=sorted(self.record.scopes) or list(self.client_config.scopes),
        )


class CredentialManager:
    """
    Produces credentials usable for an immediate provider call.

    Usage:
        manager = CredentialManager(store, flow)
        record = await store.get(account_id)
        credential = await manager.obtain_fresh_credential(account_id, record)

    At most one refresh runs per account at a time; concurrent callers
    await the in-flight refresh and share its result.
    """

    def __init__(
        self,
        token_store: TokenStore,
        oauth_flow: GoogleOAuthFlow,
        refresh_timeout_seconds: float = 20.0,
        refresh_margin: timedelta = timedelta(0),
    ):
        self._store = token_store
        self._flow = oauth_flow
        self._refresh_timeout = refresh_timeout_seconds
        self._refresh_margin = refresh_margin
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def client_config(self) -> OAuthClientConfig:
        return self._flow.config

    def is_stale(self, record: CredentialRecord, now: Optional[datetime] = None) -> bool:
        return record.is_stale(now or datetime.now(timezone.utc), self._refresh_margin)

    async def obtain_fresh_credential(
        self,
        account_id: str,
        stored_record: CredentialRecord,
    ) -> UsableCredential:
        """
        Ensure the stored credential is fresh before a provider call.

        Args:
            account_id: Account owning the credential
            stored_record: Credential as loaded from the token store

        Returns:
            UsableCredential (refreshed when stale and refreshable)

        Raises:
            StoreUnavailable: If a refreshed credential could not be persisted
        """
        if not self.is_stale(stored_record):
            return UsableCredential(stored_record, self.client_config)

        if not stored_record.refresh_token:
            logger.warning(f"Token expired and no refresh token for account {account_id}")
            return UsableCredential(stored_record, self.client_config)

        refreshed = await self._refresh_once(account_id, stored_record)
        return UsableCredential(refreshed or stored_record, self.client_config)

    async def _refresh_once(
        self,
        account_id: str,
        stored_record: CredentialRecord,
    ) -> Optional[CredentialRecord]:
        task = self._inflight.get(account_id)
        if task is None:
            task = asyncio.ensure_future(self._refresh(account_id, stored_record))
            self._inflight[account_id] = task
            task.add_done_callback(lambda done: self._forget(account_id, done))
        else:
            logger.debug(f"Joining in-flight refresh for account {account_id}")

        # Shielded so one caller giving up does not cancel the shared refresh
        return await asyncio.shield(task)

    def _forget(self, account_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(account_id) is task:
            del self._inflight[account_id]

    async def _refresh(
        self,
        account_id: str,
        stored_record: CredentialRecord,
    ) -> Optional[CredentialRecord]:
        """
        Exchange the refresh token and persist the result.

        Returns:
            The stored refreshed record, or None if the exchange failed
        """
        # Another process may have refreshed since this record was loaded
        current = await self._store.get(account_id) or stored_record
        if not self.is_stale(current):
            logger.info(f"Credential for account {account_id} already refreshed")
            return current

        refresh_token = current.refresh_token or stored_record.refresh_token
        try:
            tokens = await asyncio.wait_for(
                self._flow.refresh_token(refresh_token),
                timeout=self._refresh_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Token refresh timed out after {self._refresh_timeout}s "
                f"for account {account_id}"
            )
            return None
        except RefreshFailed as e:
            logger.warning(f"Token refresh failed for account {account_id}: {e.message}")
            return None

        refreshed = tokens.to_record(account_id, previous=current)
        stored = await self._store.upsert(account_id, refreshed)
        logger.info(f"Refreshed access token for account {account_id}")
        return stored
