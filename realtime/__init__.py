"""
Real-time event pipeline.

- The event bus and its event vocabulary
- Consumers: notification store, live metrics aggregator, email notifier
- RealtimeSession, which wires one bus to its consumers per user session
- An event simulator for demos
"""

from realtime.event_bus import ConnectionState, Event, EventBus
from realtime.events import EventKind
from realtime.live_metrics import ActivityEntry, LiveMetrics, LiveMetricsAggregator
from realtime.notification_store import Notification, NotificationStore, Priority
from realtime.email_notifier import EmailNotifier
from realtime.session import RealtimeSession

__all__ = [
    "ConnectionState",
    "Event",
    "EventBus",
    "EventKind",
    "ActivityEntry",
    "LiveMetrics",
    "LiveMetricsAggregator",
    "Notification",
    "NotificationStore",
    "Priority",
    "EmailNotifier",
    "RealtimeSession",
]
