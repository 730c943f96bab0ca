"""HTTP front door built on FastAPI."""

from .app import create_app

__all__ = ["create_app"]
