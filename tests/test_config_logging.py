import logging

from confrerie.config import Settings, load_settings
from confrerie.logging_config import setup_logging


def test_load_settings(monkeypatch):
    monkeypatch.delenv("CONFRERIE_LOG_LEVEL", raising=False)
    monkeypatch.setenv("CONFRERIE_DATA_PATH", "/tmp/confrerie.json")
    monkeypatch.setenv("CONFRERIE_SUBMIT_COOLDOWN", "9")
    s = load_settings()
    assert s.data_path == "/tmp/confrerie.json"
    assert s.submit_cooldown == 9
    assert s.admin_delegate_id == "u5"
    assert s.log_level == "INFO"

    # garbage numbers fall back to defaults
    monkeypatch.setenv("CONFRERIE_SUBMIT_COOLDOWN", "soon")
    monkeypatch.setenv("CONFRERIE_DATA_PATH", "")
    monkeypatch.setenv("CONFRERIE_LOG_LEVEL", "debug")
    s2 = load_settings()
    assert s2.submit_cooldown == 4
    assert s2.data_path == "data/app_data.json"
    assert s2.log_level == "debug"


def test_signing_key():
    assert Settings(secret_key="abc").signing_key == "abc"
    derived = Settings(data_path="a.json").signing_key
    assert len(derived) == 64
    assert derived == Settings(data_path="a.json").signing_key
    assert derived != Settings(data_path="b.json").signing_key


def test_setup_logging_idempotent():
    logger1 = setup_logging(logging.DEBUG)
    logger2 = setup_logging(logging.DEBUG)
    assert logger1 is logger2
    assert logger1.handlers  # at least one handler installed


def test_setup_logging_accepts_level_names():
    logger = logging.getLogger("confrerie")
    saved_handlers, saved_level = logger.handlers[:], logger.level
    logger.handlers.clear()
    try:
        assert setup_logging("warning").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        logger.handlers.clear()
        # unknown names fall back to INFO
        assert setup_logging("loud").level == logging.INFO
    finally:
        logger.handlers[:] = saved_handlers
        logger.setLevel(saved_level)
