"""
Unit tests for log formatting and the severity gate.
"""

import io
import logging
import re

import pytest

from embedhttp.logger import (
    LogFormatter,
    LogLevel,
    ThresholdFilter,
    configure_logging,
)


LINE_PATTERN = re.compile(r"^\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2} (ERR|WARN|INFO|DEBUG): (.*)$")


def make_record(levelno: int, message: str = "GET /") -> logging.LogRecord:
    """Helper to build a log record."""
    return logging.LogRecord("embedhttp.server", levelno, __file__, 1, message, None, None)


class TestLogLevel:
    """Tests for LogLevel."""

    def test_order(self):
        """Test the enumeration order of severities."""
        assert LogLevel.ERR < LogLevel.WARN < LogLevel.INFO < LogLevel.DEBUG

    @pytest.mark.parametrize("name, expected", [
        ("ERR", LogLevel.ERR),
        ("error", LogLevel.ERR),
        ("CRITICAL", LogLevel.ERR),
        ("warn", LogLevel.WARN),
        ("WARNING", LogLevel.WARN),
        (" info ", LogLevel.INFO),
        ("DEBUG", LogLevel.DEBUG),
        (LogLevel.DEBUG, LogLevel.DEBUG),
    ])
    def test_parse(self, name, expected):
        """Test level name parsing."""
        assert LogLevel.parse(name) is expected

    def test_parse_unknown(self):
        """Test that unknown names raise."""
        with pytest.raises(ValueError):
            LogLevel.parse("TRACE")

    @pytest.mark.parametrize("levelno, expected", [
        (logging.CRITICAL, LogLevel.ERR),
        (logging.ERROR, LogLevel.ERR),
        (logging.WARNING, LogLevel.WARN),
        (logging.INFO, LogLevel.INFO),
        (logging.DEBUG, LogLevel.DEBUG),
        (5, LogLevel.DEBUG),
    ])
    def test_from_logging(self, levelno, expected):
        """Test mapping of standard logging levels."""
        assert LogLevel.from_logging(levelno) is expected


class TestLogFormatter:
    """Tests for the line format."""

    def test_format(self):
        """Test 'YYYY/MM/DD HH:MM:SS LEVEL: message'."""
        line = LogFormatter().format(make_record(logging.INFO, "GET /echo"))

        match = LINE_PATTERN.match(line)
        assert match is not None
        assert match.group(1) == "INFO"
        assert match.group(2) == "GET /echo"

    @pytest.mark.parametrize("levelno, label", [
        (logging.ERROR, "ERR"),
        (logging.WARNING, "WARN"),
        (logging.DEBUG, "DEBUG"),
    ])
    def test_level_labels(self, levelno, label):
        """Test the four severity labels."""
        line = LogFormatter().format(make_record(levelno))

        assert f" {label}: " in line


class TestThresholdFilter:
    """Tests for the severity gate."""

    @pytest.mark.parametrize("threshold, passed", [
        (LogLevel.ERR, {"ERR", "WARN", "INFO", "DEBUG"}),
        (LogLevel.WARN, {"WARN", "INFO", "DEBUG"}),
        (LogLevel.INFO, {"INFO", "DEBUG"}),
        (LogLevel.DEBUG, {"DEBUG"}),
    ])
    def test_gate(self, threshold, passed):
        """Test that a line passes when its severity is >= the threshold."""
        gate = ThresholdFilter(threshold)
        levels = {
            "ERR": logging.ERROR,
            "WARN": logging.WARNING,
            "INFO": logging.INFO,
            "DEBUG": logging.DEBUG,
        }

        result = {name for name, levelno in levels.items() if gate.filter(make_record(levelno))}

        assert result == passed

    def test_default_threshold(self):
        """Test that the default threshold is INFO."""
        assert ThresholdFilter().threshold is LogLevel.INFO


class TestConfigureLogging:
    """Tests for handler installation."""

    def test_writes_request_line(self):
        """Test an INFO line reaching the stream."""
        stream = io.StringIO()
        configure_logging("INFO", stream=stream)

        logging.getLogger("embedhttp.server").info("GET /echo")

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        assert LINE_PATTERN.match(lines[0]).group(2) == "GET /echo"

    def test_gate_applied(self):
        """Test that lines below the threshold are dropped."""
        stream = io.StringIO()
        configure_logging("DEBUG", stream=stream)

        log = logging.getLogger("embedhttp.core.connection")
        log.info("hidden")
        log.debug("shown")

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_reconfigure_replaces_handler(self):
        """Test that a second call does not duplicate lines."""
        first = io.StringIO()
        second = io.StringIO()
        configure_logging("INFO", stream=first)
        package_logger = configure_logging("INFO", stream=second)

        logging.getLogger("embedhttp").info("once")

        assert first.getvalue() == ""
        assert second.getvalue().count("once") == 1
        assert len(package_logger.handlers) == 1
        assert package_logger.propagate is False
