"""
Observability module for the rules engine SDK.

Provides:
- JSON log lines for the ``rules_sdk`` logger tree
- Compiler errors rendered with their stable kind and state
- Logger configuration driven by settings

The SDK is a library: configuration touches only the ``rules_sdk`` logger,
never the host application's root logger.

Usage:
    from rules_sdk.core.observability import configure_structured_logging

    configure_structured_logging("DEBUG")
"""

import json
import logging
from datetime import UTC, datetime
from typing import IO

from rules_sdk.core.errors import RulesEngineError

SDK_LOGGER_NAME = "rules_sdk"

# Attributes every LogRecord carries; anything else came from logging.extra
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per log line.

    Keys: ``timestamp`` (UTC ISO 8601), ``level``, ``logger``, ``message``,
    ``source`` (module, line, function), plus ``error`` when the record
    carries exception info and ``extra`` for fields passed via ``extra=``.
    A ``RulesEngineError`` is rendered with its error kind and state so a
    failed compile can be diagnosed from the log alone.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "module": record.module,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info and record.exc_info[1] is not None:
            entry["error"] = _render_error(record.exc_info[1])

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRIBUTES}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def _render_error(error: BaseException) -> dict:
    if isinstance(error, RulesEngineError):
        return error.to_dict()
    return {"errorType": type(error).__name__, "message": str(error)}


def configure_structured_logging(
    level: str = "INFO", stream: IO[str] | None = None
) -> logging.Handler:
    """
    Send ``rules_sdk`` log records to ``stream`` as JSON lines.

    Replaces handlers previously installed by this function and stops
    propagation, so records are not duplicated by the host's root handlers.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Destination, stderr when omitted

    Returns:
        The installed handler
    """
    sdk_logger = logging.getLogger(SDK_LOGGER_NAME)
    for existing in list(sdk_logger.handlers):
        if isinstance(existing.formatter, StructuredFormatter):
            sdk_logger.removeHandler(existing)
    sdk_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    sdk_logger.addHandler(handler)
    sdk_logger.propagate = False
    return handler


def configure_logging_from_settings() -> None:
    """Apply ``settings.log_level`` to the SDK logger, as JSON when enabled."""
    from rules_sdk.core.config import settings

    if settings.structured_logs:
        configure_structured_logging(settings.log_level)
    else:
        sdk_logger = logging.getLogger(SDK_LOGGER_NAME)
        sdk_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
        sdk_logger.propagate = True
