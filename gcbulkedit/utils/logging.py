"""
Structured logging for the API and the maintenance scripts.

Production renders JSON lines; development renders a colored console. Every
entry carries the service name and version, and two kinds of values are
scrubbed before rendering:

- Stripe credentials and signature headers are shortened to their edges
- customer emails keep only the first character of the local part and the
  domain, which is enough to tell aliases apart in a trace
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from gcbulkedit import __version__
from gcbulkedit.config import Environment, Settings, get_settings

SERVICE_NAME = "gcbulkedit-api"

CREDENTIAL_KEYS = ("secret", "api_key", "signature", "authorization")
EMAIL_KEYS = ("email",)

REDACTED = "***REDACTED***"


def mask_credential(value: Any) -> str:
    if isinstance(value, str) and len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return REDACTED


def mask_email(value: Any) -> Any:
    """``alice@example.com`` -> ``a***@example.com``; lists are masked per item."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return sorted(mask_email(item) for item in value)
    if not isinstance(value, str):
        return value
    local, sep, domain = value.partition("@")
    if not sep:
        return REDACTED
    return f"{local[:1]}***@{domain}"


def filter_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Scrub Stripe credentials and customer emails from an event."""
    for key, value in event_dict.items():
        key_lower = key.lower()
        if any(part in key_lower for part in CREDENTIAL_KEYS):
            event_dict[key] = mask_credential(value)
        elif any(part in key_lower for part in EMAIL_KEYS):
            event_dict[key] = mask_email(value)
    return event_dict


def add_service_info(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = __version__
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger it writes through."""
    settings = settings or get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        filter_sensitive_data,
        add_service_info,
    ]

    if settings.environment == Environment.PRODUCTION:
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=settings.debug)]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.value),
    )

    # Stripe logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
