"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codenotify.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the web client to read the public contest API."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Token", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )
