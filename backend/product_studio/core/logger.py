import logging
import json
import sys
import os
from datetime import datetime, timezone
import uuid

LOGGER_NAME = "product-studio"


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "trace_id"):
            log_record["trace_id"] = record.trace_id

        if hasattr(record, "props"):
            log_record.update(record.props)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def setup_logger(name: str = LOGGER_NAME):
    logger = logging.getLogger(name)
    level_name = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        # stderr, same stream uvicorn writes to
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)

    return logger


logger = setup_logger()


class TaskLogger:
    """Logger bound to one batch (or one request) through a trace id."""

    def __init__(self, trace_id: str = None):
        self.trace_id = trace_id or str(uuid.uuid4())
        self.logger = logger

    def _extra(self, kwargs: dict) -> dict:
        return {"trace_id": self.trace_id, "props": kwargs}

    def info(self, message: str, **kwargs):
        self.logger.info(message, extra=self._extra(kwargs))

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, extra=self._extra(kwargs))

    def error(self, message: str, **kwargs):
        self.logger.error(message, extra=self._extra(kwargs))

    def exception(self, message: str, **kwargs):
        self.logger.exception(message, extra=self._extra(kwargs))
