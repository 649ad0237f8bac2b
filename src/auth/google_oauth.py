"""
Google OAuth 2.0 implementation for calendar access.

Implements the OAuth 2.0 authorization code flow:
1. Generate authorization URL → user redirected to Google
2. User grants permission → Google redirects back with code
3. Exchange code for tokens → access_token + refresh_token
4. Use access_token to call Calendar API
5. Refresh access_token when expired using refresh_token
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import httpx

from src.auth.credentials import CredentialRecord
from src.auth.exceptions import OAuthExchangeError, RefreshFailed
from src.config import OAuthClientConfig

logger = logging.getLogger(__name__)


@dataclass
class OAuthTokens:
    """OAuth token response from Google."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]
    token_type: str
    scope: str
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expiry(self) -> Optional[datetime]:
        """Calculate token expiry time."""
        if self.expires_in is None:
            return None
        return self.issued_at + timedelta(seconds=self.expires_in)

    def to_record(
        self,
        account_id: str,
        previous: Optional[CredentialRecord] = None,
    ) -> CredentialRecord:
        """
        Build the credential record to persist.

        Google omits refresh_token and sometimes scope on refresh and
        re-consent; those carry over from the previous record.
        """
        refresh_token = self.refresh_token
        scopes = frozenset(self.scope.split())
        if previous is not None:
            refresh_token = refresh_token or previous.refresh_token
            scopes = scopes or previous.scopes

        return CredentialRecord(
            account_id=account_id,
            access_token=self.access_token,
            refresh_token=refresh_token,
            expiry=self.expiry,
            scopes=scopes,
            token_type=self.token_type or "Bearer",
        )

    @classmethod
    def from_response(cls, token_data: dict) -> "OAuthTokens":
        expires_in = token_data.get("expires_in")
        return cls(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=token_data.get("token_type", "Bearer"),
            scope=token_data.get("scope", ""),
        )


class GoogleOAuthFlow:
    """
    Manages the Google OAuth 2.0 flow.

    Usage:
        flow = GoogleOAuthFlow(settings.oauth_client_config())

        # Step 1: Get authorization URL
        auth_url = flow.get_authorization_url(state="random_state")
        # Redirect user to auth_url

        # Step 2: Handle callback with authorization code
        tokens = await flow.exchange_code(code)

        # Step 3: Refresh token when expired
        new_tokens = await flow.refresh_token(tokens.refresh_token)
    """

    def __init__(
        self,
        config: OAuthClientConfig,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def get_authorization_url(self, state: str) -> str:
        """
        Generate the Google OAuth authorization URL.

        Args:
            state: Random string to prevent CSRF attacks

        Returns:
            URL to redirect user to for authorization
        """
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Always show consent screen (ensures refresh token)
            "state": state,
        }
        return f"{self.config.auth_uri}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            code: Authorization code from OAuth callback

        Returns:
            OAuthTokens with access_token and refresh_token

        Raises:
            OAuthExchangeError: If token exchange fails
        """
        data = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.config.redirect_uri,
        }

        try:
            token_data = await self._post_token_request(data)
            tokens = OAuthTokens.from_response(token_data)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise OAuthExchangeError(
                f"Failed to exchange authorization code: {e}",
                original_error=e,
            )

        logger.info("Successfully exchanged authorization code for tokens")
        return tokens

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        """
        Refresh an expired access token.

        Args:
            refresh_token: The refresh token from initial authorization

        Returns:
            New OAuthTokens with fresh access_token

        Raises:
            RefreshFailed: If refresh fails (HTTP error, transport error, timeout)
        """
        data = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            token_data = await self._post_token_request(data)
            tokens = OAuthTokens.from_response(token_data)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise RefreshFailed(f"Failed to refresh access token: {e}", original_error=e)

        if not tokens.refresh_token:
            # Google only rotates the refresh token occasionally
            tokens.refresh_token = refresh_token

        logger.info("Successfully refreshed access token")
        return tokens

    async def _post_token_request(self, data: dict) -> dict:
        async with self._client() as client:
            response = await client.post(self.config.token_uri, data=data)
            response.raise_for_status()
            return response.json()
