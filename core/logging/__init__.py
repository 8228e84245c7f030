# Structured logging with channel tagging
import sys
import logging
import structlog
from typing import Optional, Iterable

from core.config.settings import Settings
from .channels import LogChannel, get_channel_for_component

# Global flag to prevent duplicate logging configuration
_logging_configured = False

DEFAULT_REDACT_KEYS = (
    "authorization", "access_token", "api_secret", "password", "totp_secret",
    "enctoken", "cookie", "set-cookie",
)


def make_redactor(keys: Iterable[str]):
    """Build a structlog processor that masks sensitive fields recursively."""
    keys_to_redact = {k.lower() for k in keys}

    def _redact(obj):
        if isinstance(obj, dict):
            out = {}
            for k, v in obj.items():
                if isinstance(k, str) and k.lower() in keys_to_redact:
                    out[k] = "[REDACTED]"
                else:
                    out[k] = _redact(v)
            return out
        if isinstance(obj, list):
            return [_redact(v) for v in obj]
        return obj

    def redact_sensitive(logger, name, event_dict):
        return _redact(event_dict)

    return redact_sensitive


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging and structlog once per process."""
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return

    level = settings.logging.level.upper()
    handlers = []
    if settings.logging.console_enabled:
        handlers.append(logging.StreamHandler(sys.stdout))
    else:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=handlers,
        force=True,
    )

    def add_standard_context(logger, name, event_dict):
        """Bind standard context fields once from settings."""
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("env", settings.environment.value)
        return event_dict

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            add_standard_context,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            make_redactor(settings.logging.redact_keys or DEFAULT_REDACT_KEYS),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    logger = structlog.get_logger(name)
    if component:
        logger = logger.bind(
            component=component,
            channel=get_channel_for_component(component).value,
        )
    return logger


def get_channel_logger(name: str, channel: LogChannel) -> structlog.BoundLogger:
    """Get a logger for a specific channel."""
    return structlog.get_logger(name).bind(channel=channel.value)


def get_logger_safe(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance safely (alias for get_logger)."""
    return get_logger(name, component)


def get_api_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an API logger safely."""
    return get_channel_logger(name, LogChannel.API)


def get_audit_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an audit logger safely."""
    return get_channel_logger(name, LogChannel.AUDIT)


def get_error_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an error logger safely."""
    return get_channel_logger(name, LogChannel.ERROR)


def get_database_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a database logger safely."""
    return get_channel_logger(name, LogChannel.DATABASE)


def get_broker_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a broker traffic logger safely."""
    return get_channel_logger(name, LogChannel.BROKER)


# Export all functions
__all__ = [
    "LogChannel",
    "configure_logging",
    "make_redactor",
    "get_logger",
    "get_logger_safe",
    "get_channel_logger",
    "get_api_logger_safe",
    "get_audit_logger_safe",
    "get_error_logger_safe",
    "get_database_logger_safe",
    "get_broker_logger_safe",
]
