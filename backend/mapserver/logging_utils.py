from __future__ import annotations

import contextvars
import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import Settings, settings

LOGGER_NAME = "map_server"
LOG_FILE_NAME = "map_server.log.jsonl"

_REQUEST_ID: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "map_server_request_id",
    default=None,
)


def current_request_id() -> str | None:
    return _REQUEST_ID.get()


def bind_request_id(request_id: str) -> contextvars.Token[str | None]:
    return _REQUEST_ID.set(request_id)


def reset_request_id(token: contextvars.Token[str | None] | None) -> None:
    if token is not None:
        _REQUEST_ID.reset(token)


class _RequestIdFilter(logging.Filter):
    """Stamps the request id bound to the current context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = _REQUEST_ID.get()
        return True


def _parse_level(name: str) -> int:
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _resolve_log_dir(configured_out_dir: str) -> Path | None:
    for log_dir in (
        Path(configured_out_dir) / "logs",
        Path(gettempdir()) / "map-server" / "logs",
    ):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            probe = log_dir / ".writetest"
            probe.touch(exist_ok=True)
            probe.unlink(missing_ok=True)
        except OSError:
            continue
        return log_dir
    return None


def get_logger(config: Settings = settings) -> logging.Logger:
    """The service logger: JSON lines to stderr and, when writable, a log file.

    Configured on first use only, so reloaders and repeated imports do not
    stack handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_configured", False):
        return logger

    logger.setLevel(_parse_level(config.log_level))
    logger.propagate = False
    logger.addFilter(_RequestIdFilter())

    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(message)s %(request_id)s")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_dir = _resolve_log_dir(config.out_dir)
    if log_dir is not None:
        try:
            handlers.append(logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8"))
        except OSError:
            pass
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger._configured = True  # type: ignore[attr-defined]
    return logger


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    # event doubles as the message and a top-level key for log queries
    get_logger().log(level, event, extra={"event": event, **fields})
