"""Logging configuration for the storefront domain.

stdlib logging carries the output (stdout, plus rotating files outside
tests); structlog renders it, as JSON in production and staging and as
coloured console lines elsewhere.

Buyer contact details and carrier credentials pass through checkout and
dispatch code, so every event goes through ``redact_sensitive`` before it is
rendered.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog

SERVICE_NAME = "storefront"

# Keys whose values never reach a log line in full
SECRET_KEYS = frozenset({"password", "token", "authorization", "api_key", "secret"})
CONTACT_KEYS = frozenset({"phone", "billing_phone", "email", "billing_email"})


def _environment() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """Get log level based on environment."""
    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return os.getenv("LOG_LEVEL", level_map.get(_environment(), "INFO"))


def _mask_contact(value: Any) -> str:
    text = str(value)
    if "@" in text:
        name, _, domain = text.partition("@")
        return f"{name[:1]}***@{domain}"
    return f"***{text[-4:]}" if len(text) > 4 else "***"


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _redact_value(k, v) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


def _redact_value(key: str, value: Any) -> Any:
    lowered = key.lower()
    if value is None:
        return None
    if lowered in SECRET_KEYS:
        return "***"
    if lowered in CONTACT_KEYS:
        return _mask_contact(value)
    return _redact(value)


def redact_sensitive(_, __, event_dict: dict) -> dict:
    """structlog processor: hide secrets, mask phone numbers and emails.

    Nested payloads (a Shiprocket request body, an address dict) are walked
    too.
    """
    for key in list(event_dict):
        if key == "event":
            continue
        event_dict[key] = _redact_value(key, event_dict[key])
    return event_dict


def add_service_name(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _file_logging_enabled() -> bool:
    default = "0" if _environment() == "test" else "1"
    return os.getenv("LOG_TO_FILE", default) not in ("0", "false", "no")


def setup_stdlib_logging(log_dir: Path | None = None) -> None:
    """Route stdlib logging to stdout, plus rotating files under ``LOG_DIR``."""
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if _file_logging_enabled():
        log_dir = log_dir or Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "lelekart.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)

        # Carrier and checkout failures land here on their own for on-call
        error_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "lelekart_error.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(error_handler)

    # Suppress noisy library loggers; requests logs every Shiprocket call through urllib3
    logging.getLogger("protean").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_processors(environment: str | None = None) -> list:
    environment = environment or _environment()
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_sensitive,
    ]

    if environment in ["production", "staging"]:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def setup_structlog() -> None:
    structlog.configure(
        processors=build_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging() -> None:
    """Configure all logging for the application."""
    setup_stdlib_logging()
    setup_structlog()


def request_context(headers) -> dict:
    """Log fields for one HTTP request, read from the gateway headers.

    A request without ``X-Request-Id`` gets a fresh one, so every line of a
    checkout can be correlated.
    """
    context = {"request_id": headers.get("x-request-id") or uuid4().hex}
    for header, field in (
        ("x-user-id", "user_id"),
        ("x-user-role", "role"),
        ("idempotency-key", "idempotency_key"),
    ):
        if headers.get(header):
            context[field] = headers.get(header)
    return context


def bind_request_context(**kwargs: Any) -> None:
    """Attach key-values to every log line of this request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
