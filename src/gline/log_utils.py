"""Logging configuration and structured context helpers.

The editor owns the terminal while a line is being edited, so logs always go to
a rotating file (and optionally stderr), never to stdout.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator

from gline.paths import log_dir

DEFAULT_LOG_FILE = "gline.log"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUPS = 3
# Chatty libraries underneath the LLM adapters.
QUIET_LOGGERS = {"asyncio": logging.WARNING, "httpx": logging.WARNING, "httpcore": logging.WARNING}

_LOG_CONTEXT: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("gline_log_context", default={})


@dataclass(frozen=True)
class LogConfig:
    """Resolved logging settings for an editor process."""

    log_file: Path
    level: int = logging.INFO
    stderr: bool = False
    json: bool = False
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUPS
    logger_levels: Dict[str, int] = field(default_factory=lambda: dict(QUIET_LOGGERS))


def _parse_level(value: str | None, default: int) -> int:
    """Parse a log level name or number from the environment."""
    if not value:
        return default
    if value.isdigit():
        return int(value)
    return logging._nameToLevel.get(value.upper(), default)


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    with contextlib.suppress(ValueError):
        return int(value)
    return default


def build_log_config(*, log_file_name: str = DEFAULT_LOG_FILE, default_level: int = logging.INFO) -> LogConfig:
    """Build log configuration from ``GLINE_LOG_*`` environment variables."""

    directory = Path(os.getenv("GLINE_LOG_DIR") or str(log_dir()))
    directory.mkdir(parents=True, exist_ok=True)

    return LogConfig(
        log_file=directory / log_file_name,
        level=_parse_level(os.getenv("GLINE_LOG_LEVEL"), default_level),
        stderr=_parse_bool(os.getenv("GLINE_LOG_STDERR"), False),
        json=_parse_bool(os.getenv("GLINE_LOG_JSON"), False),
        max_bytes=_parse_int(os.getenv("GLINE_LOG_MAX_BYTES"), DEFAULT_LOG_MAX_BYTES),
        backup_count=_parse_int(os.getenv("GLINE_LOG_BACKUPS"), DEFAULT_LOG_BACKUPS),
    )


def configure_logging(config: LogConfig) -> None:
    """Route all logging to the rotating log file (plus stderr when asked).

    Handlers already on the root logger are replaced. Anything on stdout would
    tear the frame the editor is drawing.
    """

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(config.level)

    formatter: logging.Formatter = (
        JsonFormatter() if config.json else ContextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    ]
    if config.stderr:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        root_logger.addHandler(handler)

    for name, level in config.logger_levels.items():
        logging.getLogger(name).setLevel(level)


@contextlib.contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach structured context fields to log records within a block."""

    current = _LOG_CONTEXT.get()
    merged = {**current, **{k: v for k, v in fields.items() if v is not None}}
    token = _LOG_CONTEXT.set(merged)
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a short, stable event name with key=value fields."""

    logger.log(level, event, extra={"event_fields": fields})


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, str):
        if not value:
            return '""'
        if any(ch.isspace() or ch in '="' for ch in value):
            return json.dumps(value, ensure_ascii=False)
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _format_fields(fields: Dict[str, Any]) -> str:
    return " ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields) if fields[key] is not None)


class ContextFilter(logging.Filter):
    """Copy the active ``log_context`` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.context_fields = dict(_LOG_CONTEXT.get())
        if not hasattr(record, "event_fields"):
            record.event_fields = {}
        return True


class ContextFormatter(logging.Formatter):
    """``<base> [turn=..] key=value ...``: context in brackets, then event fields."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _format_fields(getattr(record, "context_fields", {}))
        if context:
            line = f"{line} [{context}]"
        fields = _format_fields(getattr(record, "event_fields", {}))
        return f"{line} {fields}" if fields else line


class JsonFormatter(logging.Formatter):
    """One flat JSON object per line; context and event fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(getattr(record, "context_fields", {}))
        for key, value in getattr(record, "event_fields", {}).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
