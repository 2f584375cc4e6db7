"""
Logging setup for the command API.

One JSON object per line in production (pipe through jq to filter on
request_id or job_id), a colored single-line format for local work.
Fields passed through `extra=` are carried into both formats.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Attributes every LogRecord carries; anything else came in through extra={}
_STANDARD_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'getMessage'
}

_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}
_RESET = '\033[0m'


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for attr_name, attr_value in record.__dict__.items():
        if attr_name in _STANDARD_ATTRS:
            continue
        # Only include serializable types
        if isinstance(attr_value, (str, int, float, bool, type(None), dict, list)):
            fields[attr_name] = attr_value
    return fields


class JSONFormatter(logging.Formatter):
    """Single-line JSON records (CloudWatch friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key, value in _extra_fields(record).items():
            entry.setdefault(key, value)

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class PrettyFormatter(logging.Formatter):
    """Colored output for development; extra fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno, _RESET)
        line = (
            f"{color}[{record.levelname}]{_RESET} "
            f"{datetime.now(timezone.utc).strftime('%H:%M:%S.%f')[:-3]} "
            f"{record.name}: {record.getMessage()}"
        )

        extras = ', '.join(
            f"{key}={value}" for key, value in _extra_fields(record).items()
            if value is not None
        )
        if extras:
            line += f" ({extras})"

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def _file_handler(log_file: str, level: int) -> logging.Handler:
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setLevel(level)
    # Files are always JSON, whatever the console format
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(
    app_name: str = 'jobcommand',
    log_level: str = 'INFO',
    log_format: str = 'json',
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Install handlers on the named logger, replacing any it already has.

    Args:
        app_name: Logger name
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: 'json' or 'pretty'
        log_file: Also write JSON records to this path

    Returns:
        The configured logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(app_name)
    logger.setLevel(level)
    logger.handlers = []

    stream = logging.StreamHandler(sys.stdout)
    stream.setLevel(level)
    stream.setFormatter(PrettyFormatter() if log_format == 'pretty' else JSONFormatter())
    logger.addHandler(stream)

    if log_file:
        try:
            logger.addHandler(_file_handler(log_file, level))
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    logger.propagate = False
    return logger


def configure_package_loggers(
    log_level: str = 'INFO',
    log_format: str = 'json',
    log_file: Optional[str] = None,
    packages: tuple = ('core', 'db', 'features'),
) -> None:
    """
    Apply the same handlers to every top-level package logger.

    Modules log through logging.getLogger(__name__), so the handlers have to
    sit on the package roots rather than on a single application logger.
    """
    for package in packages:
        setup_logging(package, log_level=log_level,
                      log_format=log_format, log_file=log_file)
