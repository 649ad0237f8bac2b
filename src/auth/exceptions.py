"""
Exceptions for credential storage and the OAuth lifecycle.

Each exception carries a stable error code and an HTTP status so the API
boundary can render it without inspecting backend-specific errors.
"""


class CredentialError(Exception):
    """Base exception for token store and OAuth operations."""

    error_code: str = "CREDENTIAL_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class AccountNotAuthorized(CredentialError):
    """
    No credential is stored for the account.

    The OAuth front door (/auth) must be completed first.
    """

    error_code = "AUTH_REQUIRED"
    status_code = 401


class Unauthorized(CredentialError):
    """Caller did not present the configured API key."""

    error_code = "UNAUTHORIZED"
    status_code = 401


class StoreUnavailable(CredentialError):
    """
    Token store could not be reached.

    Causes:
    - Database connection failure
    - Filesystem I/O error
    - Store call exceeded its timeout

    Safe to retry the whole operation.
    """

    error_code = "STORE_UNAVAILABLE"
    status_code = 503
    retryable = True


class StoreCorrupt(CredentialError):
    """Persisted credential data could not be parsed back into a record."""

    error_code = "STORE_CORRUPT"
    status_code = 500


class RefreshFailed(CredentialError):
    """
    Refresh-token exchange failed.

    Logged and absorbed by the credential manager; the stale credential is
    used and the provider call reports its own authorization error.
    """

    error_code = "REFRESH_FAILED"
    status_code = 502
    retryable = True


class OAuthExchangeError(CredentialError):
    """Authorization code could not be exchanged for tokens."""

    error_code = "OAUTH_EXCHANGE_FAILED"
    status_code = 502


class OAuthConfigurationError(CredentialError):
    """OAuth client identity is missing from the environment."""

    error_code = "NOT_CONFIGURED"
    status_code = 503
