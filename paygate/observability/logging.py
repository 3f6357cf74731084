"""
Structured Logging with Structlog.

JSON logs for the payment gateway. Every line carries the service name,
the request ID bound by the HTTP middleware, and never a credential value:
Zoho tokens and Razorpay secrets are masked before rendering, including
when a whole credential bundle is logged as a dict.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from paygate.config import settings

MASK = "***"

# Compared case-insensitively against event keys and nested dict keys
SECRET_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "client_secret",
        "key_secret",
        "signature",
        "razorpay_signature",
        "zoho_access_token",
        "zoho_refresh_token",
        "zoho_client_secret",
        "zoho_pay_api_key",
        "zoho_pay_signing_key",
        "razorpay_key_secret",
    }
)

# httpx logs every request URL at INFO, which duplicates provider logs
NOISY_LOGGERS = ("httpx", "httpcore")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: MASK if str(key).lower() in SECRET_KEYS else _mask(item)
            for key, item in value.items()
        }
    return value


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential values, at the top level and inside logged dicts."""
    for key, value in event_dict.items():
        if key.lower() in SECRET_KEYS:
            event_dict[key] = MASK
        elif isinstance(value, dict):
            event_dict[key] = _mask(value)
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog on top of stdlib logging.

    A JSON line looks like:
    {
        "event": "razorpay_order_created",
        "level": "info",
        "timestamp": "2026-10-19T09:00:00.123456Z",
        "logger": "paygate.services.razorpay_provider",
        "service": "paygate-api",
        "version": "0.1.0",
        "request_id": "9f1c...",
        ...additional context
    }
    """
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.is_development))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind structured context for the duration of a block.

    Usage:
        with log_context(request_id="req-123"):
            await gateway.process_refund(request)
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
