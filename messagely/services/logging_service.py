"""structlog setup for messagely: one JSON object per line on stdout.

Entries carry the request's correlation id (bound by CorrelationIdMiddleware),
and credential-bearing fields are masked before rendering.
"""

import logging
import sys
from typing import Any, Dict

import structlog

# Substrings of event keys whose values never reach the log stream:
# plain passwords and their bcrypt hashes, session tokens and bearer headers,
# and the JWT signing key.
SENSITIVE_KEYS = ("password", "token", "authorization", "secret")

REDACTED = "REDACTED"


def _is_sensitive(key: str) -> bool:
    key_lower = key.lower()
    return any(fragment in key_lower for fragment in SENSITIVE_KEYS)


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor masking credential fields, matched case-insensitively."""
    for key in [k for k in event_dict if _is_sensitive(k)]:
        event_dict[key] = REDACTED
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging (uvicorn, asyncpg) to stdout.

    Args:
        log_level: Level name from settings; unknown names fall back to INFO
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Logger bound with ``logger_name`` when a name is given."""
    logger = structlog.get_logger()
    return logger.bind(logger_name=name) if name else logger
