"""
Logging setup for gator.

Diagnostics go to the `gator` logger: a RichHandler on the console and,
optionally, a file in JSON-lines or plain text. Pipeline code reports
through log_event, which tags each record with an event name and a dict of
fields; the JSONL formatter writes those as one flat object per line.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from .config import LoggingConfig


LOGGER_NAME = "gator"


def setup_logging(cfg: LoggingConfig, log_dir: Path | None = None) -> logging.Logger:
    level = _level_from_string(cfg.level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    if cfg.console:
        console_handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True, show_path=False)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)

    if cfg.file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / cfg.filename, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(_build_file_formatter(cfg.format))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def log_event(
    logger: logging.Logger | None,
    message: str,
    level: int = logging.INFO,
    *,
    event: str,
    **fields: Any,
) -> None:
    """Log `message` as the named pipeline event with structured fields.

    Fields travel as a single `fields` attribute on the record, so their
    names never clash with LogRecord's own attributes.
    """
    if logger is None:
        return
    logger.log(level, message, extra={"event": event, "fields": fields})


class JsonlFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, event, message, then the event fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
        }
        for key, value in (getattr(record, "fields", None) or {}).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _build_file_formatter(fmt: str) -> logging.Formatter:
    if fmt == "jsonl":
        return JsonlFormatter()
    return logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
