"""Fixtures for API tests: services wired with test doubles and a TestClient."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import AppServices, set_services
from src.api.main import app
from src.auth.credential_manager import CredentialManager
from src.config import Settings
from src.services.calendar_service import CalendarService

API_KEY = "test-api-key"


@pytest.fixture
def gateway():
    gw = AsyncMock()
    gw.list_events.return_value = []
    gw.delete_event.return_value = True
    return gw


@pytest.fixture
def services(memory_store, stub_flow, gateway):
    manager = CredentialManager(memory_store, stub_flow)
    services = AppServices(
        settings=Settings(),
        token_store=memory_store,
        oauth_flow=stub_flow,
        gateway=gateway,
        calendar=CalendarService(memory_store, manager, gateway, account_id="default"),
    )
    set_services(services)
    yield services
    set_services(None)


@pytest.fixture
def client(monkeypatch, services):
    """Create test client with services already registered."""
    monkeypatch.setenv("ACTIONS_API_KEY", API_KEY)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_KEY}"}
