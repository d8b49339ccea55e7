"""Tests for template_engine.logging_config."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from template_engine.logging_config import JSONFormatter, configure_logging


def _record(msg: str, *args: object, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("template_engine.test", logging.INFO, __file__, 1, msg, args, exc_info)


class TestJSONFormatter:
    def test_single_line_payload(self) -> None:
        line = JSONFormatter().format(_record("Built template '%s'", "app_template"))
        assert "\n" not in line

        payload = json.loads(line)
        assert payload["level"] == "INFO"
        assert payload["logger"] == "template_engine.test"
        assert payload["message"] == "Built template 'app_template'"
        assert payload["timestamp"].endswith("+00:00")
        assert "exc_info" not in payload

    def test_includes_exception(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record("failed", exc_info=sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in payload["exc_info"]


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def _ours(self) -> list[logging.Handler]:
        return [h for h in logging.getLogger().handlers if getattr(h, "_pgtemplate_handler", False)]

    def test_plain_handler(self) -> None:
        configure_logging(debug=False, structured=False)
        (handler,) = self._ours()
        assert not isinstance(handler.formatter, JSONFormatter)
        assert logging.getLogger().level == logging.WARNING

    def test_structured_debug(self) -> None:
        configure_logging(debug=True, structured=True)
        (handler,) = self._ours()
        assert isinstance(handler.formatter, JSONFormatter)
        assert logging.getLogger().level == logging.DEBUG

    def test_repeated_calls_replace_handler(self) -> None:
        configure_logging()
        configure_logging()
        assert len(self._ours()) == 1
