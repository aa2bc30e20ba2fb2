"""
Structured logging configuration for the application.

JSON logs in production, readable lines in development. Every record
carries the id of the HTTP request that produced it (or "-" outside a
request), so one request can be followed across routers, crud helpers and
queued tasks.
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

QUIET_LOGGERS = {
    "urllib3": logging.WARNING,
    "boto3": logging.WARNING,
    "botocore": logging.WARNING,
    "passlib": logging.ERROR,
    "sqlalchemy.engine": logging.WARNING,
    "celery": logging.INFO,
}


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    Adds timestamp, level, logger and request id to every JSON record.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['request_id'] = getattr(record, 'request_id', '-')

        # Source location only for warnings and errors
        if record.levelno >= logging.WARNING:
            log_record['function'] = record.funcName
            log_record['line'] = record.lineno


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure the root logger. Safe to call again (replaces handlers).

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        json_logs: JSON output for production, plain text for development
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(RequestContextFilter())

    if json_logs:
        formatter = CustomJsonFormatter('%(message)s')
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    console_handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
