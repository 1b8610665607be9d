from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from rentease.config import LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

SERVICE_NAME = "rentease"

# Event keys that carry credentials or payer references
SENSITIVE_KEYS = frozenset({"code", "transaction_reference", "proof_artifact"})


def add_service_name(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def redact_sensitive(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask OTP codes and payment references; left intact at DEBUG."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[key]
        if value is not None:
            event_dict[key] = "***"
    return event_dict


def build_processors(json_output: bool, redact: bool = True) -> list[Processor]:
    """
    Processor chain shared by the API and the scripts.

    Args:
        json_output: JSONRenderer for log aggregation, ConsoleRenderer otherwise
        redact: Mask sensitive keys before rendering
    """
    renderer: Processor = cast(
        Processor,
        (
            structlog.processors.JSONRenderer()
            if json_output
            else structlog.dev.ConsoleRenderer(colors=True)
        ),
    )
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_service_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if redact:
        processors.append(redact_sensitive)
    processors.append(renderer)
    return processors


def setup_logging() -> None:
    """
    Configures structured logging globally using structlog.

    In production (LOG_LEVEL=INFO): JSON lines with sensitive keys masked
    In development (LOG_LEVEL=DEBUG): human-readable console output, unmasked
    """
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=LOG_LEVEL,
    )

    # SQL echo and migration chatter drown the booking events
    for noisy_logger in ("sqlalchemy.engine", "alembic.runtime.migration", "uvicorn.access"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    debug = LOG_LEVEL == "DEBUG"
    structlog.configure(
        processors=build_processors(json_output=LOG_LEVEL == "INFO", redact=not debug),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
