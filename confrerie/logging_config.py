import logging
import sys

# Chatty third-party loggers kept at WARNING unless we run at DEBUG
_NOISY = ("uvicorn.access", "multipart", "python_multipart")


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Install the stdout handler on the ``confrerie`` logger.

    ``level`` is a logging constant or a level name such as ``"DEBUG"`` (as
    read from ``CONFRERIE_LOG_LEVEL``); unknown names fall back to INFO.
    Later calls return the already configured logger untouched.
    """
    logger = logging.getLogger("confrerie")
    if logger.handlers:
        return logger  # already configured
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    if level > logging.DEBUG:
        for name in _NOISY:
            logging.getLogger(name).setLevel(logging.WARNING)
    return logger
