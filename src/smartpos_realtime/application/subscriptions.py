"""Subscription registry for realtime events.

Lets several consumers share one connection manager: each subscriber
registers for an event type (or ``all``) with optional equality filters
on the event data, and the registry's ``dispatch`` is passed to the
manager as its event callback.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from smartpos_realtime.domain.events import EventEnvelope

logger = structlog.get_logger(__name__)

ALL_EVENTS = "all"


@dataclass
class Subscription:
    """A registered event subscriber.

    Attributes:
        id: Subscription identifier returned by subscribe()
        event_type: Event type to match, or ``all``
        callback: Called with the matching envelope
        filters: Key/value pairs that must all equal the event data's values
    """

    id: str
    event_type: str
    callback: Callable[[EventEnvelope], None]
    filters: dict[str, Any] = field(default_factory=dict)

    def matches(self, envelope: EventEnvelope) -> bool:
        if self.event_type != ALL_EVENTS and self.event_type != envelope.type:
            return False

        if self.filters:
            data = envelope.data if isinstance(envelope.data, dict) else {}
            for key, value in self.filters.items():
                if key not in data or data[key] != value:
                    return False

        return True


class SubscriptionRegistry:
    """Routes envelopes to matching subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        event_type: str,
        callback: Callable[[EventEnvelope], None],
        filters: dict[str, Any] | None = None,
    ) -> str:
        """Register a subscriber.

        Args:
            event_type: Event type to receive, or ``all``
            callback: Called with each matching envelope
            filters: Optional equality filters on the event data

        Returns:
            Subscription ID for unsubscribe()
        """
        if not callable(callback):
            raise TypeError("callback must be callable")

        subscription_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[subscription_id] = Subscription(
            id=subscription_id,
            event_type=event_type,
            callback=callback,
            filters=dict(filters or {}),
        )
        logger.debug("Subscription added", subscription_id=subscription_id, event_type=event_type)
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscriber.

        Returns:
            True if the subscription existed
        """
        removed = self._subscriptions.pop(subscription_id, None)
        if removed is not None:
            logger.debug("Subscription removed", subscription_id=subscription_id)
        return removed is not None

    def clear(self) -> None:
        self._subscriptions.clear()

    def dispatch(self, envelope: EventEnvelope) -> int:
        """Deliver an envelope to every matching subscriber.

        A failing subscriber is logged and does not stop delivery to the others.

        Returns:
            Number of subscribers called
        """
        delivered = 0
        # Copy so callbacks may unsubscribe themselves
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(envelope):
                continue
            delivered += 1
            try:
                subscription.callback(envelope)
            except Exception:
                logger.exception(
                    "Subscriber callback failed",
                    subscription_id=subscription.id,
                    event_type=envelope.type,
                )
        return delivered
