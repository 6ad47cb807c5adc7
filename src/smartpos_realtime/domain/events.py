"""Realtime event envelopes and topic filtering.

Every frame on either transport is a JSON object of the form::

    {"type": "stock_alert", "topic": "inventory", "data": {...}}

Frames that are not valid JSON objects are dropped by the parser.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

DEFAULT_TOPIC = "system"


@dataclass(frozen=True)
class EventEnvelope:
    """One parsed realtime message.

    Attributes:
        type: Event type, e.g. ``stock_updated`` or ``sale_created``
        topic: Topic tag set by the backend, if any
        category: Legacy category field used by older backend events
        data: Event payload
        raw: The full decoded JSON object
    """

    type: str
    topic: str | None = None
    category: str | None = None
    data: Any = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def resolved_topic(self) -> str:
        """Topic used for filtering: ``topic``, else ``category``, else ``system``."""
        return self.topic or self.category or DEFAULT_TOPIC


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def parse_envelope(frame: str | bytes) -> EventEnvelope | None:
    """Parse a raw frame into an envelope.

    Returns:
        The envelope, or None if the frame is not a JSON object
    """
    try:
        payload = json.loads(frame)
    except (TypeError, ValueError, RecursionError):
        return None

    if not isinstance(payload, dict):
        return None

    event_type = payload.get("type")
    return EventEnvelope(
        type=event_type if isinstance(event_type, str) else "",
        topic=_optional_str(payload.get("topic")),
        category=_optional_str(payload.get("category")),
        data=payload.get("data"),
        raw=payload,
    )


class TopicFilter:
    """Accepts envelopes whose resolved topic is in a fixed set.

    An empty set accepts everything.
    """

    def __init__(self, topics: Iterable[str] | None = None) -> None:
        self._topics = frozenset(topics or ())

    @property
    def topics(self) -> frozenset[str]:
        return self._topics

    def accepts(self, envelope: EventEnvelope) -> bool:
        if not self._topics:
            return True
        return envelope.resolved_topic in self._topics

    def __repr__(self) -> str:
        return f"TopicFilter({sorted(self._topics)!r})"
