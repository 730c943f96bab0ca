"""Persistence gateway for the single JSON document."""

from __future__ import annotations

import fcntl
import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import PersistenceError
from ..core.models import Document
from ..core.normalize import normalize
from ..core.seeds import default_document

T = TypeVar("T")

log = logging.getLogger("confrerie.store")


def dump_document(doc: Document) -> str:
    """Pretty-printed UTF-8 JSON, the format of the data file and of backups."""
    return json.dumps(doc.to_json(), indent=2, ensure_ascii=False)


class DocumentStore:
    """JSON file backed storage.

    Nothing is cached between calls: every :meth:`load` re-reads the file and
    every :meth:`save` rewrites it whole under an exclusive ``flock``. Writers
    are serialised against each other but readers are not blocked, and
    ``load -> mutate -> save`` is a best-effort transaction: two overlapping
    requests can lose one another's update.
    """

    def __init__(self, path: str | Path = "data/app_data.json") -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def ensure_storage(self) -> None:
        """Create the data directory and seed the file on first run."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            log.info("Seeding new data file at %s", self.path)
            self.path.write_text(dump_document(default_document()), encoding="utf-8")

    def load(self) -> Document:
        """Read and normalize the document; unreadable content yields defaults."""
        self.ensure_storage()
        raw = self.path.read_bytes()
        if not raw.strip():
            log.warning("Data file %s is empty, using defaults", self.path)
            return default_document()
        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError):
            log.warning("Data file %s is not valid JSON, using defaults", self.path)
            return default_document()
        if not isinstance(decoded, dict):
            log.warning("Data file %s has no top-level object, using defaults", self.path)
            return default_document()
        return normalize(decoded)

    def save(self, doc: Document) -> Document:
        """Normalize ``doc`` again and rewrite the file under an exclusive lock."""
        try:
            self.ensure_storage()
            normalized = normalize(doc)
            payload = dump_document(normalized)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o664)
            with os.fdopen(fd, "r+", encoding="utf-8") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                try:
                    f.seek(0)
                    f.truncate()
                    f.write(payload)
                    f.flush()
                finally:
                    fcntl.flock(f, fcntl.LOCK_UN)
        except OSError as exc:
            log.exception("Could not write data file %s", self.path)
            raise PersistenceError("Impossible d'ouvrir le fichier de donnees.") from exc
        return normalized

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def mutate(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``operation(doc, *args, **kwargs)`` on a fresh copy and save it.

        If the operation raises, nothing is written.
        """
        doc = self.load()
        result = operation(doc, *args, **kwargs)
        self.save(doc)
        return result

    def export_json(self) -> str:
        return dump_document(self.load())
