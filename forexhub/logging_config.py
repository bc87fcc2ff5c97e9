# forexhub/logging_config.py
"""
Structured JSON logging for storage observability.

Every record carries the storage mode that served the current request (set
by the refresh middleware), so degraded operation is visible in the logs
without cross-referencing the health endpoint.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

# Storage mode that served the current request ("durable" / "volatile")
storage_mode_var: ContextVar[str | None] = ContextVar("storage_mode", default=None)

_EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "storage_type",
    "from_mode",
    "to_mode",
    "operation",
    "entity",
    "entity_id",
    "attempt",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "storage_mode": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        storage_mode = storage_mode_var.get()
        if storage_mode:
            log_data["storage_mode"] = storage_mode

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure root logging.

    Args:
        json_format: If True, emit JSON lines. If False, use a human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_storage_operation(storage_type: str, operation: str, entity: str):
    """
    Context manager for storage operation instrumentation.

    Logs completion at DEBUG with timing; failures at WARNING and re-raised.

    Usage:
        with log_storage_operation("durable", "create", "post"):
            record = session_work()
    """
    start_time = time.perf_counter()
    logger = logging.getLogger("forexhub.storage.ops")
    extra = {"storage_type": storage_type, "operation": operation, "entity": entity}

    try:
        yield
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            f"{storage_type} {operation} {entity} completed ({duration_ms}ms)",
            extra={**extra, "event": "storage_op_complete", "duration_ms": duration_ms},
        )
    except Exception as e:
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.warning(
            f"{storage_type} {operation} {entity} failed: {type(e).__name__}: {e}",
            extra={**extra, "event": "storage_op_failed", "duration_ms": duration_ms},
        )
        raise
