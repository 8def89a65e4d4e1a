"""ASGI entry point.

Run with ``uvicorn api.main:create_default_app --factory``.
"""

from fastapi import FastAPI

from api.routes import create_app
from config.logging import configure_logging
from config.settings import AppSettings
from orchestrator.factory import build_system


def create_default_app() -> FastAPI:
    """Build the application from environment settings."""
    settings = AppSettings()
    configure_logging(settings.environment, settings.log_level)
    return create_app(build_system(settings))
