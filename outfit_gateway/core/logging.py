"""Structured logging for the outfit rating gateway.

Every gateway log line is one JSON object carrying the service name,
environment, level, message and the correlation id of the dispatch in
progress, plus any keyword fields the caller passes. ``SecretStr`` values
passed as fields are masked before rendering.

``setup_logging`` installs a python-json-logger handler on the root logger;
host applications that configure logging themselves can skip it.
"""

import logging
import json
import time
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar
from functools import wraps
from pydantic import SecretStr
from pythonjsonlogger import jsonlogger

from outfit_gateway.core.config import get_settings

# Set for the duration of one dispatch
correlation_id: ContextVar[str] = ContextVar('correlation_id', default='')

MASK = '**********'


class StructuredLogger:
    """Logger wrapper emitting one JSON document per call."""

    def __init__(self, name: str):
        settings = get_settings()
        self.logger = logging.getLogger(name)
        self.service_name = settings.APP_NAME
        self.environment = settings.ENVIRONMENT.value

    def _record(self, level: int, message: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'service': self.service_name,
            'environment': self.environment,
            'level': logging.getLevelName(level),
            'message': message,
            'correlation_id': correlation_id.get(),
        }
        for key, value in fields.items():
            record[key] = MASK if isinstance(value, SecretStr) else value
        return record

    def log(self, level: int, message: str, error: Optional[BaseException] = None, **fields):
        if not self.logger.isEnabledFor(level):
            return

        record = self._record(level, message, fields)
        if error is not None:
            record['error_type'] = error.__class__.__name__
            record['error_message'] = str(error)
            record['error_trace'] = ''.join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        self.logger.log(level, json.dumps(record, default=str))

    def debug(self, message: str, **fields):
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, error: Optional[BaseException] = None, **fields):
        """Log at ERROR; ``error`` adds its type, message and traceback."""
        self.log(logging.ERROR, message, error=error, **fields)


class GatewayJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['logger'] = record.name
        log_record['level'] = record.levelname


def setup_logging(level: Optional[int] = None) -> logging.Handler:
    """Install the JSON handler on the root logger once and return it."""
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler.formatter, GatewayJsonFormatter):
            return handler

    handler = logging.StreamHandler()
    handler.setFormatter(GatewayJsonFormatter())
    root.addHandler(handler)

    if level is None:
        level = logging.DEBUG if get_settings().DEBUG else logging.INFO
    root.setLevel(level)
    return handler


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def monitor_performance(name: Optional[str] = None):
    """Log the duration and outcome of an async callable."""
    def decorator(func):
        operation = name or func.__name__
        logger = get_logger(func.__module__)

        @wraps(func)
        async def wrapped(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Operation {operation} failed",
                    error=e,
                    operation=operation,
                    process_time_ms=round((time.perf_counter() - started) * 1000, 2)
                )
                raise
            logger.info(
                f"Operation {operation} completed",
                operation=operation,
                process_time_ms=round((time.perf_counter() - started) * 1000, 2)
            )
            return result

        return wrapped
    return decorator
