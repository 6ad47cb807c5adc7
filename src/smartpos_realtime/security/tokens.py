"""Bearer token providers for the realtime channel.

A token provider is any callable returning the current token (or None),
either directly or as an awaitable. It is called once per connection
attempt, so rotated tokens are picked up on reconnect.

Tokens are never logged - URLs are masked before they reach a log line.
"""

from __future__ import annotations

import inspect
import os
from collections.abc import Awaitable, Callable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from smartpos_realtime.config.endpoints import TOKEN_PARAM

logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], "str | None | Awaitable[str | None]"]

# Keys that should be masked in logs
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "credential",
        "auth",
    }
)


def is_sensitive_key(key: str) -> bool:
    """Check if a key name suggests sensitive content."""
    key_lower = key.lower()
    return key_lower == TOKEN_PARAM or any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def mask_sensitive_value(value: str) -> str:
    """Mask a sensitive value for safe logging.

    Args:
        value: The value to mask.

    Returns:
        Masked version of the value.
    """
    if len(value) <= 4:
        return "****"
    return value[:2] + "****" + value[-2:]


def mask_url_token(url: str) -> str:
    """Mask sensitive query parameters (including ``t``) in a URL."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, mask_sensitive_value(v) if is_sensitive_key(k) else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))


class StaticTokenProvider:
    """Token provider returning a fixed token."""

    def __init__(self, token: str | None) -> None:
        self._token = token or None

    def __call__(self) -> str | None:
        return self._token


class EnvironmentTokenProvider:
    """Token provider reading an environment variable on every call."""

    def __init__(self, env_key: str, environ: Mapping[str, str] | None = None) -> None:
        self._env_key = env_key
        self._environ = environ

    @property
    def env_key(self) -> str:
        return self._env_key

    def __call__(self) -> str | None:
        env = os.environ if self._environ is None else self._environ
        value = env.get(self._env_key) or None
        if value is None:
            logger.debug("Token not found in environment", env_key=self._env_key)
        return value


async def resolve_token(provider: TokenProvider | None) -> str | None:
    """Call a token provider, awaiting the result if needed.

    Exceptions raised by the provider propagate to the caller.
    """
    if provider is None:
        return None
    token = provider()
    if inspect.isawaitable(token):
        token = await token
    if token is not None and not isinstance(token, str):
        raise TypeError(f"Token provider returned {type(token).__name__}, expected str")
    return token or None
