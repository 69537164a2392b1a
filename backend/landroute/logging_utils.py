"""JSON event logging for the planner.

Every record is a single JSON object: `ts`, `level`, `logger`, `event` plus
whatever keyword fields the call site passes. Records go to stderr and, when
a writable directory can be found, to `<out_dir>/logs/planner.log.jsonl`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "landroute"
LOG_FILE_NAME = "planner.log.jsonl"


def _parse_level(name: str) -> int:
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _writable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker = directory / ".landroute-write-check"
        marker.write_text("", encoding="utf-8")
        marker.unlink()
    except OSError:
        return False
    return True


def _resolve_log_dir(configured_out_dir: str) -> Path | None:
    for candidate in (
        Path(configured_out_dir) / "logs",
        Path(gettempdir()) / LOGGER_NAME / "logs",
    ):
        if _writable(candidate):
            return candidate
    return None


def _formatter() -> logging.Formatter:
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "ts", "levelname": "level", "name": "logger"},
    )


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    # Handlers are attached once per process.
    if getattr(logger, "_landroute_handlers", False):
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False
    formatter = _formatter()

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    log_dir = _resolve_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        except OSError:
            file_handler = None
        if file_handler is not None:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger._landroute_handlers = True  # type: ignore[attr-defined]
    return logger


def _emit(level: int, event: str, fields: dict[str, Any]) -> None:
    logger = get_logger()
    if logger.isEnabledFor(level):
        logger.log(level, event, extra={"event": event, **fields})


def log_event(event: str, **fields: Any) -> None:
    _emit(logging.INFO, event, fields)


def log_warning(event: str, **fields: Any) -> None:
    _emit(logging.WARNING, event, fields)
