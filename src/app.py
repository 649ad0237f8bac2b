"""
ASGI entry point for Calendar Actions API.

Re-exports the FastAPI app from src/api/main.py for hosted deployment.
"""

from src.api.main import app

__all__ = ["app"]
