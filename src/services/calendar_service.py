"""
Calendar service - the calling layer between the API and the gateway.

Loads the stored credential for the configured account, has the
CredentialManager make it fresh, then runs the gateway operation.
"""

import logging
from typing import Optional, Sequence

from src.auth.credential_manager import CredentialManager, UsableCredential
from src.auth.credentials import CredentialRecord
from src.auth.exceptions import AccountNotAuthorized
from src.auth.google_oauth import OAuthTokens
from src.auth.token_storage import TokenStore
from src.integrations.base import (
    CalendarEvent,
    CalendarGateway,
    CreateEventRequest,
    ListEventsQuery,
    UpdateEventRequest,
)

logger = logging.getLogger(__name__)


class CalendarService:
    """
    Calendar operations for a single account.

    Every operation raises AccountNotAuthorized before touching the
    credential manager when no credential has been stored yet.
    """

    def __init__(
        self,
        token_store: TokenStore,
        credential_manager: CredentialManager,
        gateway: CalendarGateway,
        account_id: str = "default",
    ):
        self._store = token_store
        self._credentials = credential_manager
        self._gateway = gateway
        self.account_id = account_id

    @property
    def token_store(self) -> TokenStore:
        return self._store

    async def _fresh_credential(self) -> UsableCredential:
        record = await self._store.get(self.account_id)
        if record is None:
            raise AccountNotAuthorized(
                f"No Google credential stored for account {self.account_id}; visit /auth first"
            )
        return await self._credentials.obtain_fresh_credential(self.account_id, record)

    async def list_events(self, query: ListEventsQuery) -> Sequence[CalendarEvent]:
        credential = await self._fresh_credential()
        return await self._gateway.list_events(credential, query)

    async def create_event(self, request: CreateEventRequest) -> CalendarEvent:
        credential = await self._fresh_credential()
        return await self._gateway.create_event(credential, request)

    async def update_event(self, request: UpdateEventRequest) -> CalendarEvent:
        credential = await self._fresh_credential()
        return await self._gateway.update_event(credential, request)

    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        credential = await self._fresh_credential()
        return await self._gateway.delete_event(credential, calendar_id, event_id)

    async def auth_status(self) -> Optional[CredentialRecord]:
        """Stored credential for the account, if any."""
        return await self._store.get(self.account_id)

    async def store_authorization(self, tokens: OAuthTokens) -> CredentialRecord:
        """
        Persist tokens from an authorization code exchange.

        A refresh token from an earlier grant is kept when Google does not
        issue a new one.
        """
        existing = await self._store.get(self.account_id)
        record = tokens.to_record(self.account_id, previous=existing)
        if not record.refresh_token:
            logger.warning(
                f"No refresh token issued for account {self.account_id}; "
                "access will lapse when the token expires"
            )
        return await self._store.upsert(self.account_id, record)
