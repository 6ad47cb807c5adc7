"""Base protocol and utilities for realtime transports.

Defines the TransportPort protocol that the WebSocket and SSE adapters
implement, plus the shared error type and reconnect backoff.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from smartpos_realtime.config.schema import BACKOFF_FLOOR_MS

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from smartpos_realtime.config.schema import RealtimeConfig
    from smartpos_realtime.domain.connection import TransportKind


class TransportError(Exception):
    """Raised when a transport cannot be opened or fails while reading."""

    def __init__(self, kind: TransportKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind


@runtime_checkable
class TransportPort(Protocol):
    """Protocol for receive-only realtime transports.

    A transport is single-use: opened once, read until the server closes it
    or an error occurs, then closed.
    """

    @property
    def kind(self) -> TransportKind:
        """Return the transport type."""
        ...

    async def open(self) -> None:
        """Open the connection.

        Raises:
            TransportError: If the connection cannot be established
        """
        ...

    def messages(self) -> AsyncIterator[str | bytes]:
        """Iterate over inbound frames until the connection ends.

        Raises:
            TransportError: If the connection fails while reading
        """
        ...

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        ...


# Builds a transport for a fully resolved (token-bearing) URL
TransportFactory = Callable[[str, "RealtimeConfig"], TransportPort]


@dataclass
class ExponentialBackoff:
    """Exponential reconnect backoff in milliseconds.

    The first delay is ``base_delay_ms``; every further delay doubles,
    clamped to ``max_delay_ms``. There is no retry limit.
    """

    base_delay_ms: int = BACKOFF_FLOOR_MS
    max_delay_ms: int = 15000
    jitter: float = 0.0
    attempts: int = field(default=0, init=False)

    @property
    def current_delay_ms(self) -> int:
        """Delay the next call to next_delay_ms() will return, before jitter."""
        exponent = min(self.attempts, 32)
        return min(self.base_delay_ms * (2**exponent), self.max_delay_ms)

    def next_delay_ms(self) -> int:
        """Return the next delay and advance the backoff."""
        delay = self.current_delay_ms
        self.attempts += 1

        if self.jitter:
            jitter_range = delay * self.jitter
            delay = round(delay + random.uniform(-jitter_range, jitter_range))
            delay = max(0, min(delay, self.max_delay_ms))

        return delay

    def reset(self) -> None:
        """Reset to the floor delay."""
        self.attempts = 0
