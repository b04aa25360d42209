"""Middleware registration."""

from fastapi import FastAPI

from codenotify.config import Settings
from codenotify.middleware.cors import setup_cors
from codenotify.middleware.error_handler import setup_error_handlers
from codenotify.middleware.logging import setup_logging
from codenotify.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order (last added = outermost),
    so CORS goes last to wrap error responses from the inner layers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
