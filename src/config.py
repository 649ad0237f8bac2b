"""
Configuration management for Calendar Actions.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

from src.auth.exceptions import OAuthConfigurationError

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

DEFAULT_SCOPES = (
    "https://www.googleapis.com/auth/calendar "
    "https://www.googleapis.com/auth/calendar.events"
)

TOKENS_FILENAME = "tokens.local.json"


@dataclass(frozen=True)
class OAuthClientConfig:
    """
    OAuth client identity, built once at startup.

    Shared by the OAuth front door and the credential manager.
    """

    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...]
    token_uri: str = GOOGLE_TOKEN_URL
    auth_uri: str = GOOGLE_AUTH_URL


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    See .env.example for available options.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )
    actions_api_key: str = Field(
        default="",
        description="Shared secret callers must present on /api routes"
    )

    # Google OAuth client identity
    google_client_id: str = Field(
        default="",
        description="Google OAuth 2.0 client ID"
    )
    google_client_secret: str = Field(
        default="",
        description="Google OAuth 2.0 client secret"
    )
    oauth_redirect_uri: str = Field(
        default="",
        validation_alias=AliasChoices("oauth_redirect_uri", "google_redirect_uri"),
        description="OAuth redirect URI (must match Google Cloud Console)"
    )
    google_scopes: str = Field(
        default=DEFAULT_SCOPES,
        description="Space-separated OAuth scopes requested at consent"
    )

    # Timezone Configuration
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to expand recurring events created without one"
    )

    # Account
    account_id: str = Field(
        default="default",
        description="Account identifier credentials are stored under"
    )

    # Relational token store
    database_url: str = Field(
        default="",
        description="Database connection URL (selects the relational token store)"
    )
    pghost: str = Field(default="", description="PostgreSQL host")
    pgport: Optional[int] = Field(default=None, description="PostgreSQL port")
    pgdatabase: str = Field(default="", description="PostgreSQL database name")
    pguser: str = Field(default="", description="PostgreSQL user")
    pgpassword: str = Field(default="", description="PostgreSQL password")
    pgsslmode: str = Field(
        default="",
        description="asyncpg ssl mode (e.g. require, prefer); empty leaves the driver default"
    )

    # File token store
    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory holding tokens.local.json when no database is configured"
    )

    # Timeouts
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound for every Google API and token endpoint call"
    )
    store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for every token store read or write"
    )
    token_refresh_margin_seconds: int = Field(
        default=0,
        ge=0,
        description="Treat tokens expiring within this many seconds as stale"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def scopes(self) -> list[str]:
        """Configured OAuth scopes as a list."""
        return self.google_scopes.split()

    @property
    def uses_database(self) -> bool:
        """Check if the relational token store is configured."""
        if self.database_url:
            return True
        return bool(self.pghost and self.pgdatabase and self.pguser)

    @property
    def tokens_path(self) -> Path:
        """Location of the file token store."""
        return self.data_dir / TOKENS_FILENAME

    @property
    def async_database_url(self) -> str:
        """
        Database URL rewritten for an async driver.

        postgres:// and postgresql:// use asyncpg, sqlite:// uses aiosqlite.
        When DATABASE_URL is empty the URL is assembled from the PG* variables.

        Raises:
            ValueError: If no database is configured
        """
        if not self.uses_database:
            raise ValueError("No database configured. Set DATABASE_URL or PGHOST/PGDATABASE/PGUSER.")

        if not self.database_url:
            url = URL.create(
                "postgresql+asyncpg",
                username=self.pguser,
                password=self.pgpassword or None,
                host=self.pghost,
                port=self.pgport,
                database=self.pgdatabase,
            )
            return url.render_as_string(hide_password=False)

        url = make_url(self.database_url)
        if url.drivername in ("postgres", "postgresql", "postgresql+psycopg2"):
            url = url.set(drivername="postgresql+asyncpg")
        elif url.drivername == "sqlite":
            url = url.set(drivername="sqlite+aiosqlite")
        return url.render_as_string(hide_password=False)

    @property
    def oauth_configured(self) -> bool:
        """Check if Google OAuth is configured."""
        return bool(self.google_client_id and self.google_client_secret and self.oauth_redirect_uri)

    def oauth_client_config(self) -> OAuthClientConfig:
        """
        Build the OAuth client identity.

        Returns:
            Frozen OAuthClientConfig

        Raises:
            OAuthConfigurationError: Naming every missing variable
        """
        missing = []
        if not self.google_client_id:
            missing.append("GOOGLE_CLIENT_ID")
        if not self.google_client_secret:
            missing.append("GOOGLE_CLIENT_SECRET")
        if not self.oauth_redirect_uri:
            missing.append("OAUTH_REDIRECT_URI")
        if missing:
            raise OAuthConfigurationError(
                f"OAuth env vars not configured: {', '.join(missing)}"
            )

        return OAuthClientConfig(
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
            redirect_uri=self.oauth_redirect_uri,
            scopes=tuple(self.scopes),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.
    Use this function throughout the application to access settings.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from src.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.uses_database)
    """
    return Settings()
