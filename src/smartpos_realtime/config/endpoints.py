"""Realtime endpoint resolution.

Both transports resolve their URL in the same priority order:

1. Explicit URL from configuration
2. Derived from a sibling value (API base URL for the WebSocket,
   the WebSocket URL for the SSE stream)
3. Built-in default endpoint

Resolution happens once per client so reconnects never re-read
the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

if TYPE_CHECKING:
    from smartpos_realtime.config.schema import RealtimeConfig

API_BASE_ENV = "SMARTPOS_API_BASE_URL"
DEFAULT_SOCKET_URL = "wss://namhbcf-api.bangachieu2.workers.dev/api/v1/ws"

SOCKET_PATH = "/api/v1/ws"
STREAM_PATH = "/realtime"
STREAM_PATH_SUFFIXES = ("/realtime", "/sse")
TOKEN_PARAM = "t"

_TO_HTTP = {"ws": "http", "wss": "https"}
_TO_WS = {"http": "ws", "https": "wss"}


class EndpointSource(str, Enum):
    """Where a resolved URL came from."""

    EXPLICIT = "explicit"
    API_BASE = "api_base"
    SOCKET = "socket"
    DEFAULT = "default"


@dataclass(frozen=True)
class Endpoints:
    """Resolved, token-free transport URLs."""

    socket_url: str
    stream_url: str
    socket_source: EndpointSource
    stream_source: EndpointSource


def swap_scheme(url: str, mapping: Mapping[str, str]) -> str:
    """Replace the URL scheme using ``mapping``; unknown schemes are kept."""
    parts = urlsplit(url)
    scheme = mapping.get(parts.scheme, parts.scheme)
    return urlunsplit(parts._replace(scheme=scheme))


def socket_url_from_api_base(api_base_url: str) -> str:
    """Build the WebSocket URL for a REST API base URL.

    ``https://host`` becomes ``wss://host/api/v1/ws``; a base that already
    ends in ``/api/v1`` only gets ``/ws`` appended.
    """
    parts = urlsplit(swap_scheme(api_base_url, _TO_WS))
    base_path = parts.path.rstrip("/")
    if base_path.endswith("/api/v1"):
        path = f"{base_path}/ws"
    else:
        path = f"{base_path}{SOCKET_PATH}"
    return urlunsplit(parts._replace(path=path))


def derive_stream_url(socket_url: str) -> str:
    """Derive the SSE fallback URL from a WebSocket URL.

    The scheme is swapped (``ws`` to ``http``, ``wss`` to ``https``) and the
    path defaults to ``/realtime`` unless it already ends in ``/realtime``
    or ``/sse``.
    """
    parts = urlsplit(swap_scheme(socket_url, _TO_HTTP))
    path = parts.path.rstrip("/")
    if not path.endswith(STREAM_PATH_SUFFIXES):
        path = STREAM_PATH
    return urlunsplit(parts._replace(path=path))


def with_token(url: str, token: str | None) -> str:
    """Return ``url`` with ``t=<token>`` set in its query string.

    An existing ``t`` parameter is replaced. Empty tokens leave the URL unchanged.
    """
    if not token:
        return url
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != TOKEN_PARAM]
    query.append((TOKEN_PARAM, token))
    return urlunsplit(parts._replace(query=urlencode(query, quote_via=quote)))


def resolve_endpoints(
    config: RealtimeConfig,
    environ: Mapping[str, str] | None = None,
) -> Endpoints:
    """Resolve both transport URLs for a configuration.

    Args:
        config: Realtime configuration
        environ: Environment used for the API base fallback (defaults to os.environ)

    Returns:
        Resolved endpoints
    """
    env = os.environ if environ is None else environ

    if config.socket_url:
        socket_url, socket_source = config.socket_url, EndpointSource.EXPLICIT
    else:
        api_base = config.api_base_url or env.get(API_BASE_ENV)
        if api_base:
            socket_url = socket_url_from_api_base(api_base)
            socket_source = EndpointSource.API_BASE
        else:
            socket_url, socket_source = DEFAULT_SOCKET_URL, EndpointSource.DEFAULT

    if config.stream_url:
        stream_url, stream_source = config.stream_url, EndpointSource.EXPLICIT
    else:
        stream_url = derive_stream_url(socket_url)
        stream_source = (
            EndpointSource.DEFAULT
            if socket_source is EndpointSource.DEFAULT
            else EndpointSource.SOCKET
        )

    return Endpoints(
        socket_url=socket_url,
        stream_url=stream_url,
        socket_source=socket_source,
        stream_source=stream_source,
    )
