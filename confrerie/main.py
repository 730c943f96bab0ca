from __future__ import annotations

import uvicorn

from .config import load_settings
from .data.store import DocumentStore
from .logging_config import setup_logging
from .web.app import create_app


def main() -> int:
    settings = load_settings()
    log = setup_logging(settings.log_level)
    store = DocumentStore(settings.data_path)
    app = create_app(settings, store)
    log.info("Serving %s on %s:%s", settings.data_path, settings.host, settings.port)
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    except KeyboardInterrupt:
        log.info("Shutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
