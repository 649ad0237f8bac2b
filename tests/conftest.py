"""
Pytest configuration and fixtures for Calendar Actions tests.

Provides settings isolation, credential records, in-memory test doubles for
the token store and OAuth flow, and file/SQLite token store fixtures.
"""

from datetime import timedelta

import pytest

from src.auth.credentials import CredentialRecord
from src.auth.token_storage import FileTokenStore, SQLTokenStore
from src.config import OAuthClientConfig, Settings, get_settings
from src.database import create_store_engine
from tests.doubles import InMemoryTokenStore, StubOAuthFlow, make_record


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep a developer's .env and environment out of the tests."""
    for name in (
        "ACTIONS_API_KEY",
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
        "OAUTH_REDIRECT_URI",
        "GOOGLE_REDIRECT_URI",
        "DATABASE_URL",
        "PGHOST",
        "PGDATABASE",
        "PGUSER",
        "PGPASSWORD",
        "PGPORT",
        "PGSSLMODE",
        "GOOGLE_SCOPES",
        "TIMEZONE",
        "ACCOUNT_ID",
        "DATA_DIR",
        "HTTP_TIMEOUT_SECONDS",
        "STORE_TIMEOUT_SECONDS",
        "TOKEN_REFRESH_MARGIN_SECONDS",
        "LOG_LEVEL",
        "PYTHON_ENV",
        "API_HOST",
        "API_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setitem(Settings.model_config, "env_file", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client_config() -> OAuthClientConfig:
    return OAuthClientConfig(
        client_id="client-id.apps.googleusercontent.com",
        client_secret="client-secret",
        redirect_uri="http://localhost:8000/auth/callback",
        scopes=("https://www.googleapis.com/auth/calendar",),
    )


@pytest.fixture
def fresh_record() -> CredentialRecord:
    return make_record()


@pytest.fixture
def stale_record() -> CredentialRecord:
    return make_record(access_token="stale-access", expires_in=timedelta(minutes=-5))


@pytest.fixture
def memory_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def stub_flow(client_config) -> StubOAuthFlow:
    return StubOAuthFlow(client_config)


@pytest.fixture
def file_store(tmp_path) -> FileTokenStore:
    return FileTokenStore(tmp_path / "data" / "tokens.local.json", timeout_seconds=5)


@pytest.fixture
async def sql_store(tmp_path):
    """Relational store on a throwaway SQLite database."""
    engine = create_store_engine(f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}")
    store = SQLTokenStore(engine, timeout_seconds=5)
    await store.ensure_schema()
    try:
        yield store
    finally:
        await store.close()
