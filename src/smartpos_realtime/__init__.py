"""SmartPOS realtime client - live POS events over WebSocket or SSE.

This package keeps a live event feed open to the SmartPOS backend:
- Prefers a WebSocket, falling back to a Server-Sent Events stream
- Reconnects forever with bounded exponential backoff
- Delivers only events matching the configured topics (sales, inventory, ...)
"""

__version__ = "0.1.0"

__author__ = "SmartPOS Team"

from smartpos_realtime.application.connection_manager import RealtimeConnectionManager
from smartpos_realtime.application.subscriptions import SubscriptionRegistry
from smartpos_realtime.config.schema import RealtimeConfig, Topic
from smartpos_realtime.domain.connection import ConnectionState, ConnectionStatus
from smartpos_realtime.domain.events import EventEnvelope

__all__ = [
    "ConnectionState",
    "ConnectionStatus",
    "EventEnvelope",
    "RealtimeConfig",
    "RealtimeConnectionManager",
    "SubscriptionRegistry",
    "Topic",
    "__version__",
]
