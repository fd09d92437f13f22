"""Tests for structured logging."""

from __future__ import annotations

import json
import logging

from devctl.log_config import _ConsoleFormatter, log_event
from devctl.models import SystemEvent
from devctl.utils.iso_formatter import ISO8601Formatter


def _record(msg: object, level: int = logging.WARNING) -> logging.LogRecord:
    return logging.LogRecord("devctl.test", level, __file__, 1, msg, None, None)


class TestFormatters:
    """Tests for console and JSONL formatters."""

    def test_console_shows_event_message(self) -> None:
        """Structured events print as `LEVEL: message`."""
        record = _record({"event": "invalid_port_env", "message": "Ignoring invalid PORT: x"})
        assert _ConsoleFormatter().format(record) == "WARNING: Ignoring invalid PORT: x"

    def test_iso_formatter_emits_jsonl(self) -> None:
        """JSONL lines carry time, level and every event field."""
        record = _record({"event": "port_collision", "port": 3000})
        line = json.loads(ISO8601Formatter().format(record))
        assert line["level"] == "WARNING"
        assert line["event"] == "port_collision"
        assert line["port"] == 3000
        assert line["time"].endswith("Z")


class TestLogEvent:
    """Tests for log_event()."""

    def test_excludes_none_fields(self) -> None:
        """Only populated fields are logged."""
        captured: list[logging.LogRecord] = []

        class _Capture(logging.Handler):
            def emit(self, record: logging.LogRecord) -> None:
                captured.append(record)

        logger = logging.getLogger("devctl.test_log_event")
        handler = _Capture()
        logger.addHandler(handler)
        try:
            log_event(logging.WARNING, SystemEvent(event="server_started", port=3000), logger)
        finally:
            logger.removeHandler(handler)

        assert captured[0].msg == {"event": "server_started", "port": 3000}
