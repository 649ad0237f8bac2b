"""
Authentication module for Calendar Actions.

Provides the OAuth 2.0 credential lifecycle for Google Calendar access:
token storage, the authorization code flow, and transparent refresh.

Only modules that do not import src.config are re-exported here;
import token_storage, google_oauth and credential_manager directly.
"""

from src.auth.credentials import CredentialRecord
from src.auth.exceptions import (
    AccountNotAuthorized,
    CredentialError,
    OAuthConfigurationError,
    OAuthExchangeError,
    RefreshFailed,
    StoreCorrupt,
    StoreUnavailable,
    Unauthorized,
)

__all__ = [
    "CredentialRecord",
    "CredentialError",
    "AccountNotAuthorized",
    "Unauthorized",
    "StoreUnavailable",
    "StoreCorrupt",
    "RefreshFailed",
    "OAuthExchangeError",
    "OAuthConfigurationError",
]
