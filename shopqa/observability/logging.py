"""Log rendering for shopqa.

Modules log through the standard library (``logging.getLogger(__name__)``).
This module decides how those records look on the terminal or in CI:

- one JSON object per line (``StructuredFormatter``)
- a colored single line for local runs (``HumanReadableFormatter``)

Fields bound with ``log_context`` (the test name, the fixture being built,
the reset step) are attached to every record emitted inside the block.
The API client also attaches an ``http`` extra to request records.

Example:
    Configure once, e.g. from the CLI or a conftest::

        from shopqa.observability.logging import configure_logging, log_context

        configure_logging(level="DEBUG", json_format=True)

        with log_context(test="checkout_as_guest"):
            await reset_environment()  # every record carries test=...
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, TextIO

ROOT_LOGGER = "shopqa"
JSON_LOGS_ENV = "SHOPQA_JSON_LOGS"

_bound: ContextVar[dict[str, Any] | None] = ContextVar("shopqa_log_context", default=None)

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"


def _record_time(record: logging.LogRecord, style: str) -> str | float:
    if style == "unix":
        return record.created
    moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
    if style == "iso":
        return moment.isoformat(timespec="milliseconds")
    return moment.strftime(style)


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON object.

    Attributes:
        include_location: Add file, line and function of the call site.
        timestamp_format: 'iso', 'unix', or a strftime pattern.
        extra_fields: Static fields merged into every line (run id, shop name).
    """

    def __init__(
        self,
        include_location: bool = False,
        timestamp_format: str = "iso",
        extra_fields: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.include_location = include_location
        self.timestamp_format = timestamp_format
        self.extra_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = dict(self.extra_fields)
        entry.update(
            timestamp=_record_time(record, self.timestamp_format),
            level=record.levelname.lower(),
            logger=record.name,
            message=record.getMessage(),
        )

        context = get_context()
        if context:
            entry["context"] = context

        http = getattr(record, "http", None)
        if http:
            entry["http"] = http

        if self.include_location:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["exception"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Single-line output for people watching a test run."""

    def __init__(self, use_colors: bool = True, stream: TextIO | None = None) -> None:
        super().__init__()
        target = stream or sys.stderr
        self.use_colors = (
            use_colors
            and not os.environ.get("NO_COLOR")
            and getattr(target, "isatty", lambda: False)()
        )

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:<8}"
        if self.use_colors:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"

        line = f"{clock} {level} [{record.name}] {record.getMessage()}"

        context = get_context()
        if context:
            line += "  " + " ".join(f"{key}={value}" for key, value in context.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool | None = None,
    include_location: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Install a single handler on the ``shopqa`` logger.

    Calling it again replaces the previous handler, so the CLI and a
    conftest can both configure logging without duplicating lines.

    Args:
        level: Minimum level, as an int or a name such as 'DEBUG'.
        json_format: Emit JSON lines. None reads SHOPQA_JSON_LOGS.
        include_location: Add call-site information to JSON lines.
        stream: Output stream, stderr by default.

    Returns:
        The ``shopqa`` logger.
    """
    if json_format is None:
        json_format = os.environ.get(JSON_LOGS_ENV, "").lower() in ("1", "true", "yes")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    target = stream or sys.stderr
    handler = logging.StreamHandler(target)
    if json_format:
        handler.setFormatter(StructuredFormatter(include_location=include_location))
    else:
        handler.setFormatter(HumanReadableFormatter(stream=target))

    logger = logging.getLogger(ROOT_LOGGER)
    for previous in list(logger.handlers):
        logger.removeHandler(previous)
        previous.close()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind fields to every record logged inside the block.

    Nested blocks extend the outer fields and restore them on exit.
    """
    token = _bound.set({**get_context(), **fields})
    try:
        yield
    finally:
        _bound.reset(token)


def get_context() -> dict[str, Any]:
    """Return a copy of the fields currently bound by ``log_context``."""
    return dict(_bound.get() or {})
