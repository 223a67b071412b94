"""
Logging configuration for picture-api.

- structlog for structured, keyword-based events
- python-json-logger for JSON output of stdlib records (uvicorn, sqlalchemy)
- Pretty console output when running in debug mode without JSON
- Dual streams: DEBUG/INFO to stdout, WARNING and above to stderr
- Per-request trace id, set by RequestLoggingMiddleware
"""

import logging
import logging.config
from contextvars import ContextVar
from typing import Any, Dict, Optional
import structlog
from structlog.types import EventDict
from pythonjsonlogger import jsonlogger


_trace_id_context: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current request context."""
    _trace_id_context.set(trace_id)


def get_trace_id() -> Optional[str]:
    """Get the current trace ID, or None outside a request."""
    return _trace_id_context.get()


def clear_trace_id() -> None:
    """Clear the trace ID after request completes."""
    _trace_id_context.set(None)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service name, version, environment and trace id to every event."""
    from picture_api.core.config import settings

    event_dict["service"] = settings.SERVICE_NAME
    event_dict["version"] = settings.VERSION
    event_dict["environment"] = settings.ENVIRONMENT

    trace_id = get_trace_id()
    if trace_id:
        event_dict["trace_id"] = trace_id

    return event_dict


def configure_structlog(debug: bool = False, json_logs: bool = True) -> None:
    """Configure structlog processors and renderer.

    Args:
        debug: Enable debug mode with pretty console output
        json_logs: Use JSON formatting (True) or console (False)
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    if debug and not json_logs:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that always emits timestamp, level, logger and trace id."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            log_record['timestamp'] = self.formatTime(record, self.datefmt)

        log_record['level'] = (log_record.get('level') or record.levelname).upper()
        log_record['logger'] = record.name

        trace_id = get_trace_id()
        if trace_id and 'trace_id' not in log_record:
            log_record['trace_id'] = trace_id


class BelowWarningFilter(logging.Filter):
    """Keeps WARNING and above off stdout; those go to stderr."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


# Third-party loggers and the level they are capped at
LIBRARY_LOG_LEVELS = {
    "uvicorn": "INFO",
    "fastapi": "INFO",
    "aiosqlite": "WARNING",
    "botocore": "WARNING",
    "boto3": "WARNING",
    "aiobotocore": "WARNING",
}


def get_logging_config(debug: bool = False, json_logs: bool = True) -> Dict[str, Any]:
    """Build the logging dictConfig.

    DEBUG and INFO records go to stdout, WARNING and above to stderr. Both
    streams use the JSON formatter unless `json_logs` is False.
    """
    from picture_api.core.config import settings

    log_level = settings.LOG_LEVEL.upper()
    formatter = "json" if json_logs else "console"
    both = ["stdout", "stderr"]

    loggers: Dict[str, Dict[str, Any]] = {
        name: {"handlers": both, "level": level, "propagate": False}
        for name, level in LIBRARY_LOG_LEVELS.items()
    }
    loggers.update({
        "": {"handlers": both, "level": log_level, "propagate": False},
        "picture_api": {"handlers": both, "level": log_level, "propagate": False},
        # RequestLoggingMiddleware writes the access log
        "uvicorn.access": {"handlers": [], "level": "CRITICAL", "propagate": False},
        "uvicorn.error": {"handlers": ["stderr"], "level": "INFO", "propagate": False},
        "sqlalchemy.engine": {"handlers": both, "level": "INFO" if debug else "WARNING", "propagate": False},
    })

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "picture_api.core.logging_config.CustomJsonFormatter",
                "format": "%(timestamp)s %(level)s %(name)s %(message)s",
            },
            "console": {
                "format": "%(asctime)s %(levelname)-8s %(name)s %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "filters": {
            "below_warning": {"()": "picture_api.core.logging_config.BelowWarningFilter"},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "level": "DEBUG",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
                "filters": ["below_warning"],
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "level": "WARNING",
                "formatter": formatter,
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": loggers,
    }


def setup_logging(debug: bool = False, json_logs: bool = True) -> None:
    """Initialize stdlib logging and structlog. Call once at startup.

    Example:
        >>> from picture_api.core.config import settings
        >>> setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs)
    """
    logging.config.dictConfig(get_logging_config(debug=debug, json_logs=json_logs))
    configure_structlog(debug=debug, json_logs=json_logs)

    get_logger(__name__).info(
        "logging_system_initialized",
        debug_mode=debug,
        json_logs=json_logs,
        log_level=logging.getLevelName(logging.root.level),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("picture_created", picture_id="123", gallery_position=2)
    """
    return structlog.get_logger(name)
