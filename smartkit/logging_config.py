"""
Structured logging for the relay.

Every record, structlog event or stdlib line, goes through one processor chain:
request context from contextvars, the relay's chain id, then secret redaction,
then JSON (production) or a colored console renderer (DEBUG).
"""

import logging
import re
import sys
from typing import Any, Optional

import structlog

from .config import settings

_SECRET_KEYS = frozenset(
    {"private_key", "operator_private_key", "apikey", "api_key", "deploy_key", "authorization"}
)
# Pimlico endpoints carry the key in the query string
_APIKEY_IN_URL = re.compile(r"(apikey=)[^&\s\"']+", re.IGNORECASE)

QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def redact_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Mask credential fields and API keys embedded in URLs."""
    for key, value in list(event_dict.items()):
        if key.lower() in _SECRET_KEYS:
            event_dict[key] = "***"
        elif isinstance(value, str) and "apikey=" in value.lower():
            event_dict[key] = _APIKEY_IN_URL.sub(r"\1***", value)
    return event_dict


def add_chain_id(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("chain_id", settings.chain_id)
    return event_dict


def _renderer(is_dev: bool) -> structlog.types.Processor:
    if is_dev:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override log level (default: from settings.log_level)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_chain_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if not is_dev:
        shared_processors.append(structlog.processors.format_exc_info)
    # Last, so rendered tracebacks are covered too
    shared_processors.append(redact_secrets)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(is_dev),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
