"""
Calendar Actions API module.

Provides FastAPI HTTP endpoints for the calendar actions service.
"""

from src.api.main import app, run_server

__all__ = ["app", "run_server"]
