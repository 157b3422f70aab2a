"""Tests for JSON logging and the request-id context."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from file_api.config import Settings
from file_api.logging_config import (
    ROOT_LOGGER,
    JsonFormatter,
    get_logger,
    get_request_id,
    reset_request_id,
    set_request_id,
    setup_logging,
)


def make_record(msg: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("file_api.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestJsonFormatter:
    def test_core_fields_and_extras(self) -> None:
        line = JsonFormatter().format(make_record(path="/files", status_code=200))
        data = json.loads(line)
        assert data["level"] == "INFO"
        assert data["logger"] == "file_api.test"
        assert data["message"] == "hello"
        assert data["path"] == "/files"
        assert data["status_code"] == 200
        assert data["timestamp"].endswith("+00:00")

    def test_request_id_from_context(self) -> None:
        token = set_request_id("req-9")
        try:
            data = json.loads(JsonFormatter().format(make_record()))
        finally:
            reset_request_id(token)
        assert data["request_id"] == "req-9"

    def test_exception_is_formatted(self) -> None:
        try:
            raise ValueError("broken")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()
        data = json.loads(JsonFormatter().format(record))
        assert "ValueError: broken" in data["exception"]


class TestContextLogger:
    def test_names_are_namespaced(self) -> None:
        assert get_logger("handlers").logger.name == "file_api.handlers"
        assert get_logger("file_api.app").logger.name == "file_api.app"

    def test_bound_context_reaches_record(
        self, caplog: pytest.LogCaptureFixture, restore_root_logger: logging.Logger
    ) -> None:
        restore_root_logger.propagate = True
        log = get_logger("tests_ctx").bind(method="GET")
        with caplog.at_level(logging.INFO, logger=log.logger.name):
            log.info("bound", extra={"path": "/x"})
        record = caplog.records[-1]
        assert record.method == "GET"
        assert record.path == "/x"

    def test_request_id_context_var(self) -> None:
        assert get_request_id() is None
        token = set_request_id("abc")
        assert get_request_id() == "abc"
        reset_request_id(token)
        assert get_request_id() is None


class TestSetupLogging:
    def test_fallback_installs_json_handler_once(self, restore_root_logger: logging.Logger) -> None:
        settings = Settings(LOG_CONFIG_PATH="", LOG_LEVEL="DEBUG")
        setup_logging(settings)
        setup_logging(settings)
        json_handlers = [
            h for h in restore_root_logger.handlers if isinstance(h.formatter, JsonFormatter)
        ]
        assert len(json_handlers) == 1
        assert restore_root_logger.level == logging.DEBUG

    def test_yaml_config_with_level_substitution(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        restore_root_logger: logging.Logger,
    ) -> None:
        config = tmp_path / "logging.yml"
        config.write_text(
            "version: 1\n"
            "disable_existing_loggers: false\n"
            "loggers:\n"
            "  file_api:\n"
            "    level: ${LOG_LEVEL}\n"
            "    handlers: []\n"
        )
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        setup_logging(Settings(LOG_CONFIG_PATH=str(config)))

        assert restore_root_logger.level == logging.WARNING
