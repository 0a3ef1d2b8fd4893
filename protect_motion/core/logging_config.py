"""
Structured JSON Logging Configuration

Provides centralized logging configuration with:
- JSON formatted output for machine parsing
- Controller address tracking via contextvars
- Optional file rotation when a log directory is configured
- DEBUG flag forcing verbose output
"""
import logging
import logging.handlers
import os
import contextvars
import re
from datetime import datetime, timezone
from typing import Optional
from pythonjsonlogger import jsonlogger

from protect_motion.core.config import settings

# Context variable holding the controller a log record relates to
controller_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'controller', default=None
)

# Application version (can be overridden)
APP_VERSION = "1.0.0"

# Third-party loggers that are only interesting while debugging
NOISY_LOGGERS = ('uiprotect', 'pyhap', 'uvicorn.access', 'aiohttp.access')


class ControllerContextFilter(logging.Filter):
    """Adds the current controller address to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.controller = controller_var.get() or "-"
        return True


class SanitizingFilter(logging.Filter):
    """
    Filter that sanitizes log messages to prevent log injection.

    Camera names come from the controller and are echoed into log lines,
    so CR/LF are flattened before formatting.
    """

    DANGEROUS_PATTERNS = [
        (r'\r\n', ' '),
        (r'\n', ' '),
        (r'\r', ' '),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            for pattern, replacement in self.DANGEROUS_PATTERNS:
                record.msg = re.sub(pattern, replacement, record.msg)

        if record.args and isinstance(record.args, tuple):
            sanitized_args = []
            for arg in record.args:
                if isinstance(arg, str):
                    sanitized = arg
                    for pattern, replacement in self.DANGEROUS_PATTERNS:
                        sanitized = re.sub(pattern, replacement, sanitized)
                    sanitized_args.append(sanitized)
                else:
                    sanitized_args.append(arg)
            record.args = tuple(sanitized_args)

        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds standard fields to all log entries.

    Output format:
    {
        "timestamp": "2025-11-23T10:30:00.000Z",
        "level": "INFO",
        "message": "Motion detected on Front Door",
        "module": "camera_device",
        "controller": "192.168.1.1",
        "logger": "protect_motion.services.camera_device",
        ...extra fields...
    }
    """

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            log_record['timestamp'] = datetime.now(timezone.utc).isoformat()

        log_record['level'] = record.levelname
        log_record['module'] = record.module
        log_record['logger'] = record.name
        log_record['controller'] = getattr(record, 'controller', '-')

        if 'message' not in log_record:
            log_record['message'] = record.getMessage()


def setup_logging(
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    app_version: Optional[str] = None
) -> logging.Logger:
    """
    Configure application-wide logging with JSON format.

    Args:
        log_level: Override log level (default from settings, DEBUG wins)
        log_dir: Directory for rotating log files (default settings.LOG_DIR;
                 console only when neither is set)
        app_version: Application version to include in startup logs

    Returns:
        Root logger configured for the application
    """
    global APP_VERSION

    level_name = (log_level or settings.effective_log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    directory = log_dir or settings.LOG_DIR
    if app_version:
        APP_VERSION = app_version

    json_formatter = CustomJsonFormatter(
        '%(timestamp)s %(level)s %(name)s %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if directory:
        os.makedirs(directory, exist_ok=True)

        # Max 10MB per file, keep 5 rotations
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(directory, 'app.log'),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        handlers.append(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(directory, 'error.log'),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    for handler in handlers:
        handler.setFormatter(json_formatter)
        handler.addFilter(ControllerContextFilter())
        handler.addFilter(SanitizingFilter())
        root_logger.addHandler(handler)

    third_party_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the application's configuration."""
    return logging.getLogger(name)


def set_controller_context(address: Optional[str]) -> contextvars.Token:
    """
    Tag subsequent log records in this context with a controller address.

    Returns:
        Token to pass to clear_controller_context
    """
    return controller_var.set(address)


def get_controller_context() -> Optional[str]:
    """Get the controller address for the current context, if any."""
    return controller_var.get()


def clear_controller_context(token: contextvars.Token) -> None:
    """Restore the controller context that was active before set_controller_context."""
    controller_var.reset(token)


def sanitize_log_value(value: str) -> str:
    """
    Sanitize a value for safe logging, preventing log injection.

    Args:
        value: String value to sanitize

    Returns:
        Sanitized string safe for logging
    """
    if not isinstance(value, str):
        return str(value)

    sanitized = value.replace('\r\n', ' ').replace('\n', ' ').replace('\r', ' ')

    max_length = 1000
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + '...[truncated]'

    return sanitized
