# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Arbiter Contributors

"""Structured logging for the arbitration engine.

Every public engine operation runs inside a correlation context, so the
lines it emits (including those of a reentrant call made from a token
transfer or a ruling callback) share one correlation ID.

Two output formats:
- JSONFormatter: one object per line, for log shipping. Dispute context
  passed through ``extra={"dispute_id": ..., "juror": ...}`` becomes
  top-level keys.
- StandardFormatter: human-readable, colored on a terminal.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Record attributes promoted to top-level JSON keys when present
CONTEXT_FIELDS = ("dispute_id", "juror", "ruling")

_correlation_id: ContextVar[str | None] = ContextVar("arbiter_correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
) -> Generator[str, None, None]:
    """Scope a correlation ID to the enclosed block.

    An explicit ``correlation_id`` always wins. Otherwise the enclosing
    context's ID is inherited, and a fresh one is generated only at the
    outermost level.

    Yields:
        The ID in effect inside the block.
    """
    active = correlation_id or get_correlation_id() or generate_correlation_id()
    reset_token = _correlation_id.set(active)
    try:
        yield active
    finally:
        _correlation_id.reset(reset_token)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            entry["correlation_id"] = cid

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        # Rejections and failures carry their call site
        if record.levelno >= logging.WARNING:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, "extra_data", None)
        if extra_data is not None:
            entry["extra"] = extra_data

        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """``time level logger [cid] message`` lines for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    DIM = "\033[90m"
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s %(cid_prefix)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{self.RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; other handlers share the record
        view = logging.makeLogRecord(record.__dict__)

        cid = get_correlation_id()
        view.cid_prefix = self._paint(f"[{cid[:8]}]", self.DIM) + " " if cid else ""
        view.levelname = self._paint(record.levelname, self.LEVEL_COLORS.get(record.levelno, ""))

        return super().format(view)


def _resolve_level(level: str | int, configured: str) -> int:
    # An explicit non-default argument beats ARBITER_LOG_LEVEL
    chosen = configured if level == "INFO" else level
    if isinstance(chosen, int):
        return chosen
    return logging.getLevelNamesMapping().get(chosen.upper(), logging.INFO)


def _resolve_json(json_format: bool | None, configured: str) -> bool:
    if json_format is not None:
        return json_format
    if configured.lower() in ("json", "text"):
        return configured.lower() == "json"
    # Auto: JSON unless a human is watching
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int = "INFO",
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install arbiter handlers on the root logger, replacing existing ones.

    Args:
        level: Log level name or number. The default defers to ARBITER_LOG_LEVEL.
        json_format: Force JSON (True) or text (False); None follows
            ARBITER_LOG_FORMAT, then auto-detects from the terminal.
        log_file: Extra JSON log file; None falls back to ARBITER_LOG_FILE.
    """
    from .config import get_config

    config = get_config()
    use_json = _resolve_json(json_format, config.log_format)
    log_file = config.log_file if log_file is None else log_file

    root = logging.getLogger()
    root.setLevel(_resolve_level(level, config.log_level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if use_json else StandardFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
