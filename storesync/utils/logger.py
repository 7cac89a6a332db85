"""
Logging setup for the API process and its worker threads.

Records carry keyword fields (``logger.info("Job claimed", job_id=...)``).
The console gets a plain one-line format; the optional log file gets one JSON
object per line so a job can be followed across threads by its ``job_id``.
"""
import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER = "storesync"

# Loggers wired to our handlers; None means "use the configured level".
MANAGED_LOGGERS: Dict[str, Optional[str]] = {
    ROOT_LOGGER: None,
    "uvicorn": "INFO",
    "sqlalchemy.engine": "WARNING",
    "aiohttp": "WARNING",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; keyword fields are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        fields = getattr(record, "fields", None)
        if fields:
            entry.update(fields)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger:
    """Thin wrapper over ``logging.Logger`` taking keyword fields.

    ``bind`` returns a logger that adds the given fields to every record,
    which keeps job and item ids on each line a worker writes.
    """

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.context = dict(context or {})

    def bind(self, **fields: Any) -> "StructuredLogger":
        return StructuredLogger(self.logger.name, {**self.context, **fields})

    def _emit(self, level: int, message: str, fields: Dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", False)
        merged = {**self.context, **{k: v for k, v in fields.items() if v is not None}}
        self.logger.log(level, message, exc_info=exc_info, extra={"fields": merged})

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True
) -> None:
    """
    Configure logging through ``dictConfig``.

    Args:
        log_level: Level for our own loggers and the root logger
        log_file: Optional path for rotating JSON log output
        enable_console: Whether to log plain text to stdout
    """
    handlers: Dict[str, Dict[str, Any]] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "stream": sys.stdout,
            "formatter": "standard",
            "level": log_level,
        }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "level": log_level,
        }

    names = list(handlers)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
            "standard": {
                "format": "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": handlers,
        "loggers": {
            name: {"level": level or log_level, "handlers": names, "propagate": False}
            for name, level in MANAGED_LOGGERS.items()
        },
        "root": {"level": log_level, "handlers": names},
    })


def get_logger(name: str) -> StructuredLogger:
    """Logger under the ``storesync`` namespace; module names are used as-is."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return StructuredLogger(name)
    return StructuredLogger(f"{ROOT_LOGGER}.{name}")


def log_business_event(
    event_type: str,
    details: Dict[str, Any],
    request_id: Optional[str] = None
) -> None:
    """
    Audit trail entry for something a user or a job did.

    Args:
        event_type: e.g. 'migration_job_enqueued', 'entities_deleted'
        details: Event-specific fields
        request_id: Originating request, when there is one
    """
    get_logger("audit").info(
        f"Business event: {event_type}",
        event_type=event_type,
        request_id=request_id,
        **details
    )


def log_performance(
    operation: str,
    duration_ms: float,
    additional_data: Optional[Dict[str, Any]] = None
) -> None:
    """Timing of a named operation, in milliseconds."""
    get_logger("performance").info(
        f"Performance: {operation}",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **(additional_data or {})
    )
