import logging

import pytest

from pico_conventions import Container, reset_type_cache
from pico_conventions.constants import LOGGER_NAME

log_capture: list[str] = []


class ListLogHandler(logging.Handler):
    def emit(self, record):
        log_capture.append(self.format(record))


@pytest.fixture(autouse=True)
def reset_logging_capture():
    log_capture.clear()


@pytest.fixture(autouse=True)
def fresh_type_cache():
    reset_type_cache()
    yield
    reset_type_cache()


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    monkeypatch.delenv("PICO_CONVENTIONS_OVERLAP", raising=False)
    monkeypatch.delenv("PICO_CONVENTIONS_ALLOW_DUPLICATE_SCANS", raising=False)


@pytest.fixture
def captured_logs():
    handler = ListLogHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    logger = logging.getLogger(LOGGER_NAME)
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield log_capture
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)


@pytest.fixture
def container():
    return Container()
