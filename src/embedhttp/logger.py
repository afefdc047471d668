"""
=============================================================================
LOG LINES AND THE SEVERITY GATE
=============================================================================

Every module logs through the standard library:

    logger = logging.getLogger(__name__)      # embedhttp.server, ...
    logger.info(f"{request.method} {request.path}")

configure_logging() puts one stderr handler on the "embedhttp" logger that
writes lines in this shape:

    2024/05/01 12:00:00 INFO: GET /echo
    ─────────┬───────── ──┬─  ────┬────
             │            │       │
      local time     severity   message

HTTPServer.run() calls it unless the embedding program has already put its
own handlers on the "embedhttp" logger; those are left alone.

=============================================================================
SEVERITY ORDER
=============================================================================

Four severities, ordered by their position in the enumeration:

    ERR (0)  <  WARN (1)  <  INFO (2)  <  DEBUG (3)

A line is written when its severity is >= the configured threshold. With
the default threshold INFO that means INFO and DEBUG lines are written,
ERR and WARN lines are not; with threshold ERR every line is written.

    threshold   ERR   WARN   INFO   DEBUG
    ─────────   ───   ────   ────   ─────
    ERR          ✓     ✓      ✓      ✓
    WARN         -     ✓      ✓      ✓
    INFO         -     -      ✓      ✓
    DEBUG        -     -      -      ✓

Standard logging levels fold into these four: CRITICAL and ERROR are ERR,
WARNING is WARN, INFO is INFO, everything below is DEBUG.

=============================================================================
"""

import logging
import sys
from enum import IntEnum
from typing import Optional, TextIO, Union


PACKAGE_LOGGER = "embedhttp"
DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

_installed_handler: Optional[logging.Handler] = None


class LogLevel(IntEnum):
    """Line severity, compared by enumeration order."""
    ERR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3

    @classmethod
    def parse(cls, value: Union["LogLevel", str]) -> "LogLevel":
        """
        Accept a LogLevel or a name.

            LogLevel.parse("info")      # LogLevel.INFO
            LogLevel.parse("WARNING")   # LogLevel.WARN
            LogLevel.parse("ERROR")     # LogLevel.ERR

        Raises:
            ValueError: Unknown level name.
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ValueError(
                f"Invalid log level: {value!r}. Use ERR, WARN, INFO or DEBUG."
            ) from None

    @classmethod
    def from_logging(cls, levelno: int) -> "LogLevel":
        """Map a standard logging level number onto the four severities."""
        if levelno >= logging.ERROR:
            return cls.ERR
        if levelno >= logging.WARNING:
            return cls.WARN
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


_ALIASES = {
    "ERROR": "ERR",
    "CRITICAL": "ERR",
    "WARNING": "WARN",
}


class LogFormatter(logging.Formatter):
    """Formats records as "YYYY/MM/DD HH:MM:SS LEVEL: message"."""

    def __init__(self):
        super().__init__(fmt="%(asctime)s %(severity)s: %(message)s", datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        record.severity = LogLevel.from_logging(record.levelno).name
        return super().format(record)


class ThresholdFilter(logging.Filter):
    """Passes records whose severity is >= the threshold."""

    def __init__(self, threshold: Union[LogLevel, str] = LogLevel.INFO):
        super().__init__()
        self.threshold = LogLevel.parse(threshold)

    def filter(self, record: logging.LogRecord) -> bool:
        return LogLevel.from_logging(record.levelno) >= self.threshold


def configure_logging(
    level: Union[LogLevel, str] = LogLevel.INFO,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Install the stderr handler on the "embedhttp" logger.

    Calling it again replaces the handler from the previous call, so the
    threshold can be changed without duplicating lines.

    Args:
        level: Threshold for the severity gate.
        stream: Output stream, stderr by default.

    Returns:
        The package logger.
    """
    global _installed_handler

    threshold = LogLevel.parse(level)
    package_logger = logging.getLogger(PACKAGE_LOGGER)

    if _installed_handler is not None:
        package_logger.removeHandler(_installed_handler)
        _installed_handler.close()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(LogFormatter())
    handler.addFilter(ThresholdFilter(threshold))

    # The filter is the only gate; every record has to reach it.
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(handler)
    package_logger.propagate = False

    _installed_handler = handler
    return package_logger


def has_external_handlers() -> bool:
    """
    True when something other than configure_logging() attached handlers
    to the "embedhttp" logger, i.e. the embedding program routes the
    package logs itself.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    return any(h is not _installed_handler for h in package_logger.handlers)


def reset_logging() -> None:
    """Remove the handler installed by configure_logging()."""
    global _installed_handler

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _installed_handler is not None:
        package_logger.removeHandler(_installed_handler)
        _installed_handler.close()
        _installed_handler = None
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True
