import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.core.config import settings
from src.core.error_handling import request_id_var


class RequestIDFilter(logging.Filter):
    """
    Inject the current request_id (from ContextVar) into log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_var.get()
        record.request_id = request_id if request_id else ""
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line. Pipeline modules attach structured context
    (topic, attempt, counts) through ``extra={"extra_fields": {...}}``.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        if settings.LOG_INCLUDE_REQUEST_ID and getattr(record, "request_id", ""):
            log_obj["request_id"] = record.request_id

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_obj.update(extra_fields)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure logging for the API and the batch scripts.
    Uses JSON logging if configured, otherwise standard text logging.

    Args:
        level: Optional level override (e.g. from a ``--log-level`` flag)
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)

    if settings.LOG_FORMAT.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s" + (
                " - request_id=%(request_id)s" if settings.LOG_INCLUDE_REQUEST_ID else ""
            )
        )

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    # Inject request id filter so formatters can include it
    if settings.LOG_INCLUDE_REQUEST_ID:
        handler.addFilter(RequestIDFilter())

    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)
    # Generator SDKs log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
