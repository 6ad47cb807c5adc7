"""structlog setup for the realtime client.

Log lines always go to stderr: ``smartpos-realtime listen`` writes the
event feed itself to stdout. URLs carrying a ``t=`` token are masked
before rendering.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from smartpos_realtime.security.tokens import mask_url_token

LOG_LEVEL_ENV = "SMARTPOS_LOG_LEVEL"
LOG_FORMAT_ENV = "SMARTPOS_LOG_FORMAT"


def mask_token_urls(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask token query parameters in any URL-valued field."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "://" in value and "?" in value:
            event_dict[key] = mask_url_token(value)
    return event_dict


def setup_logging(
    level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Route structlog through stdlib logging on stderr.

    Args:
        level: DEBUG, INFO, WARNING or ERROR; falls back to $SMARTPOS_LOG_LEVEL, then INFO
        log_format: ``console`` or ``json``; falls back to $SMARTPOS_LOG_FORMAT, then console
    """
    level = level or os.environ.get(LOG_LEVEL_ENV, "INFO")
    log_format = log_format or os.environ.get(LOG_FORMAT_ENV, "console")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        mask_token_urls,
    ]

    if log_format == "json":
        renderer: list[Any] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        renderer = [
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LogContext:
    """Bind key/value pairs (e.g. ``client="till-1"``) to every log line in a block."""

    def __init__(self, **kwargs: Any) -> None:
        self._context = kwargs

    def __enter__(self) -> LogContext:
        structlog.contextvars.bind_contextvars(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self._context.keys())
