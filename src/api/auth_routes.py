"""
Authentication API routes for Google OAuth.

Handles the OAuth 2.0 authorization code flow:
1. /auth - Start OAuth flow (redirect to Google)
2. /auth/callback - Handle OAuth callback (exchange code for tokens)
3. /auth/status - Check whether a credential is stored (API key required)
"""

import logging
import secrets
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from src.api.dependencies import get_calendar_service, get_oauth_flow, require_api_key
from src.api.models import AuthCallbackResponse, AuthStatusResponse
from src.auth.google_oauth import GoogleOAuthFlow
from src.services.calendar_service import CalendarService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

STATE_TTL_SECONDS = 600

# In-memory state storage; a single process owns the OAuth round trip
_oauth_states: dict[str, float] = {}


def _generate_state() -> str:
    """Generate a random state token, dropping expired ones."""
    now = time.monotonic()
    for state, issued_at in list(_oauth_states.items()):
        if now - issued_at > STATE_TTL_SECONDS:
            _oauth_states.pop(state, None)

    state = secrets.token_urlsafe(32)
    _oauth_states[state] = now
    return state


def _validate_state(state: Optional[str]) -> bool:
    """Consume a state token; True if it was issued and has not expired."""
    if not state:
        return False
    issued_at = _oauth_states.pop(state, None)
    if issued_at is None:
        return False
    return time.monotonic() - issued_at <= STATE_TTL_SECONDS


@router.get("", status_code=307, response_class=RedirectResponse)
async def start_authorization(
    flow: GoogleOAuthFlow = Depends(get_oauth_flow),
) -> RedirectResponse:
    """
    Start the Google OAuth flow.

    Redirects to Google's consent screen requesting offline access so a
    refresh token is issued.
    """
    state = _generate_state()
    logger.info("Redirecting to Google consent screen")
    return RedirectResponse(flow.get_authorization_url(state), status_code=307)


@router.get("/callback", response_model=AuthCallbackResponse)
async def google_callback(
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="State token for CSRF protection"),
    error: Optional[str] = Query(None, description="Error from Google OAuth"),
    flow: GoogleOAuthFlow = Depends(get_oauth_flow),
    calendar: CalendarService = Depends(get_calendar_service),
) -> AuthCallbackResponse:
    """
    Handle the Google OAuth callback.

    Exchanges the authorization code for tokens and stores them for the
    configured account.

    Raises:
        HTTPException: 400 if Google reported an error or state is invalid
        OAuthExchangeError: If the token exchange fails
    """
    # Check for OAuth error (user denied access)
    if error:
        logger.warning(f"OAuth error: {error}")
        raise HTTPException(status_code=400, detail=f"OAuth authorization failed: {error}")

    if not _validate_state(state):
        logger.warning("Invalid or expired OAuth state token")
        raise HTTPException(
            status_code=400,
            detail="Invalid or expired state token. Please restart the OAuth flow.",
        )

    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    tokens = await flow.exchange_code(code)
    record = await calendar.store_authorization(tokens)

    logger.info(f"Stored OAuth tokens for account {record.account_id}")
    return AuthCallbackResponse(
        success=True,
        account_id=record.account_id,
        message="Successfully connected Google Calendar",
    )


@router.get(
    "/status",
    response_model=AuthStatusResponse,
    dependencies=[Depends(require_api_key)],
)
async def auth_status(
    calendar: CalendarService = Depends(get_calendar_service),
) -> AuthStatusResponse:
    """Check whether the account has a stored Google credential."""
    record = await calendar.auth_status()

    if record is None:
        return AuthStatusResponse(connected=False, account_id=calendar.account_id)

    return AuthStatusResponse(
        connected=True,
        account_id=record.account_id,
        expiry=record.expiry,
        scopes=sorted(record.scopes),
        has_refresh_token=bool(record.refresh_token),
    )
