"""Core package for La Confrerie.

The document schema, its normalizer and the JSON persistence gateway are
re-exported here so consumers can import them straight from ``confrerie``.
The HTTP front door lives in :mod:`confrerie.web`.
"""

from .core.models import Document
from .core.normalize import normalize
from .data.store import DocumentStore

__all__ = ["Document", "DocumentStore", "normalize"]
