"""
Structured logging for blockreader.

Every record carries the reader and range request it was logged under (set
with log_context) plus any keyword fields passed to the ContextLogger call.
setup_logging() sends records to a rich console and, optionally, to a
JSON-lines file.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

import orjson
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

ROOT_LOGGER = "blockreader"

_reader_id_var: ContextVar[str | None] = ContextVar("reader_id", default=None)
_request_var: ContextVar[str | None] = ContextVar("request", default=None)


def get_reader_id() -> str | None:
    return _reader_id_var.get()


def get_request() -> str | None:
    """Range request label (e.g. "0-4096") of the current context."""
    return _request_var.get()


@contextmanager
def log_context(
    reader_id: str | None = None,
    request: str | None = None,
) -> Generator[None, None, None]:
    """Attach a reader ID and/or range request label to records logged inside."""
    tokens = []
    if reader_id is not None:
        tokens.append((_reader_id_var, _reader_id_var.set(reader_id)))
    if request is not None:
        tokens.append((_request_var, _request_var.set(request)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _context_fields() -> dict[str, str]:
    fields = {"reader_id": get_reader_id(), "request": get_request()}
    return {name: value for name, value in fields.items() if value}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
        }
        if hasattr(record, "extra"):
            line["extra"] = record.extra
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(line, default=str).decode("utf-8")


class ContextRichHandler(RichHandler):
    """Rich handler that prints the reader and request next to the level."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)
        reader_id = get_reader_id()
        request = get_request()
        if not (reader_id or request):
            return level_text

        text = level_text.copy()
        if reader_id:
            # Readers are "rdr_<uuid7>"; the tail is the distinguishing part
            text.append(f" {reader_id[-8:]}", style="dim")
        if request:
            text.append(f" {request}", style="cyan")
        return text


class ContextLogger:
    """Logger wrapper whose keyword arguments become the record's ``extra`` fields."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            extra = {**fields, **_context_fields()}
            self._logger.log(level, msg, extra={"extra": extra})

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, **fields)


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Configure the ``blockreader`` logger.

    Args:
        log_level: Level for the logger and the console handler.
        log_file: JSON-lines file that receives every record, if given.
        console_output: Whether to log to stderr through rich.
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    if console_output:
        console_handler = ContextRichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        root.addHandler(console_handler)

    root.propagate = False
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    """Context-aware logger under the ``blockreader`` hierarchy."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return ContextLogger(logging.getLogger(name))
