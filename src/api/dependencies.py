"""
FastAPI dependency injection providers.

Provides the application services built at startup and the API key gate.
"""

import base64
import binascii
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request

from src.auth.credential_manager import CredentialManager
from src.auth.exceptions import OAuthConfigurationError, Unauthorized
from src.auth.google_oauth import GoogleOAuthFlow
from src.auth.token_storage import TokenStore, create_token_store
from src.config import Settings, get_settings
from src.integrations.base import CalendarGateway
from src.integrations.google_calendar.gateway import GoogleCalendarGateway
from src.services.calendar_service import CalendarService

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything the routes need, wired once at startup."""

    settings: Settings
    token_store: TokenStore
    oauth_flow: Optional[GoogleOAuthFlow] = None
    gateway: Optional[CalendarGateway] = None
    calendar: Optional[CalendarService] = None

    @property
    def oauth_configured(self) -> bool:
        return self.oauth_flow is not None


# Global services instance (initialized at startup)
_services: Optional[AppServices] = None


async def init_services(settings: Settings) -> AppServices:
    """
    Build and register the application services.

    Order: token store (schema ensured), OAuth flow, credential manager,
    gateway, calendar service. Missing OAuth configuration is logged and
    leaves the calendar routes answering 503.
    """
    global _services

    token_store = create_token_store(settings)
    await token_store.ensure_schema()

    services = AppServices(settings=settings, token_store=token_store)
    try:
        client_config = settings.oauth_client_config()
    except OAuthConfigurationError as e:
        logger.warning(f"Calendar routes disabled: {e.message}")
        _services = services
        return services

    flow = GoogleOAuthFlow(client_config, timeout_seconds=settings.http_timeout_seconds)
    manager = CredentialManager(
        token_store,
        flow,
        refresh_timeout_seconds=settings.http_timeout_seconds,
        refresh_margin=timedelta(seconds=settings.token_refresh_margin_seconds),
    )
    gateway = GoogleCalendarGateway(
        timeout_seconds=settings.http_timeout_seconds,
        default_time_zone=settings.timezone,
    )

    services.oauth_flow = flow
    services.gateway = gateway
    services.calendar = CalendarService(
        token_store,
        manager,
        gateway,
        account_id=settings.account_id,
    )
    _services = services
    logger.info(f"Services initialized ({token_store.backend} token store)")
    return services


def set_services(services: Optional[AppServices]) -> None:
    """Register prebuilt services, or clear them with None."""
    global _services
    _services = services


def services_ready() -> bool:
    return _services is not None


def current_services() -> Optional[AppServices]:
    """Registered services, or None before startup."""
    return _services


async def shutdown_services() -> None:
    """Release gateway and store resources."""
    global _services
    if _services is None:
        return
    services, _services = _services, None
    if isinstance(services.gateway, GoogleCalendarGateway):
        await services.gateway.close()
    await services.token_store.close()
    logger.info("Services shut down")


def get_services() -> AppServices:
    """
    Dependency injection for the application services.

    Raises:
        HTTPException: If services not initialized
    """
    if _services is None:
        logger.error("Services not initialized")
        raise HTTPException(
            status_code=503,
            detail="Service temporarily unavailable - services not initialized",
        )
    return _services


def get_calendar_service(services: AppServices = Depends(get_services)) -> CalendarService:
    """
    Dependency injection for the calendar service.

    Raises:
        OAuthConfigurationError: If the OAuth client identity is missing
    """
    if services.calendar is None:
        raise OAuthConfigurationError("Google OAuth is not configured")
    return services.calendar


def get_oauth_flow(services: AppServices = Depends(get_services)) -> GoogleOAuthFlow:
    """Dependency injection for the OAuth flow."""
    if services.oauth_flow is None:
        raise OAuthConfigurationError("Google OAuth is not configured")
    return services.oauth_flow


# =============================================================================
# API key gate
# =============================================================================


def _decode_basic(value: str) -> Optional[str]:
    """Password part of a Basic credential, everything after the first colon."""
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in decoded:
        return None
    return decoded.split(":", 1)[1]


def extract_api_key(request: Request) -> Optional[str]:
    """
    Find the presented API key.

    Priority: Authorization Bearer > Authorization Basic > X-API-Key header
    > key query parameter
    """
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    credentials = credentials.strip()
    if credentials:
        if scheme.lower() == "bearer":
            return credentials
        if scheme.lower() == "basic":
            password = _decode_basic(credentials)
            if password is not None:
                return password

    header_key = request.headers.get("x-api-key")
    if header_key:
        return header_key

    return request.query_params.get("key") or None


def require_api_key(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Reject the request unless it presents ACTIONS_API_KEY.

    Raises:
        Unauthorized: If no key is configured or the presented key differs
    """
    expected = settings.actions_api_key
    if not expected:
        raise Unauthorized("API key not configured")

    presented = extract_api_key(request)
    if presented is None or not secrets.compare_digest(
        presented.encode("utf-8"), expected.encode("utf-8")
    ):
        raise Unauthorized("Invalid or missing API key")
