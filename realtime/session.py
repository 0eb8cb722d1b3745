"""
Per-session wiring of the real-time pipeline.

A RealtimeSession owns one bus and every consumer attached to it. Starting a
session (an authenticated user is present) loads the user's email
preferences and connects the bus; ending it disconnects. Each session is an
independent instance, so tests and concurrent users never share state.
"""

import logging
from typing import Any, Mapping, Optional, Union

from common.clock import Clock, SystemClock
from common.config import Settings, get_settings
from delivery.dispatcher import EmailDispatcher
from delivery.models import DeliveryPreferences, DispatchResult
from delivery.transport import EmailTransport, build_transport
from realtime.email_notifier import EmailNotifier
from realtime.event_bus import ConnectionState, EventBus
from realtime.live_metrics import LiveMetricsAggregator
from realtime.notification_store import NotificationStore

logger = logging.getLogger("realtime_session")


class RealtimeSession:
    """
    Composition root: bus, notification store, live metrics, email delivery.

    Example:
        session = RealtimeSession()
        session.start({"email": "ops@example.com",
                       "notificationPreferences": {"shipmentCreated": True}})
        session.bus.publish("entity:created", {"trackingNumber": "CST099"})
        await session.notifier.drain()
        session.end()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        transport: Optional[EmailTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()

        self.bus = EventBus(clock=self.clock, event_log_size=self.settings.event_log_size)
        self.notifications = NotificationStore(capacity=self.settings.notification_capacity)
        self.metrics = LiveMetricsAggregator(
            activity_capacity=self.settings.activity_capacity, clock=self.clock
        )
        self.dispatcher = EmailDispatcher(
            transport=transport or build_transport(self.settings, self.clock),
            clock=self.clock,
            queue_capacity=self.settings.delivery_queue_capacity,
            send_timeout=self.settings.send_timeout_seconds,
        )
        self.notifier = EmailNotifier(self.dispatcher)

        # Consumers subscribe once; subscriptions survive disconnect/reconnect
        self.notifications.attach(self.bus)
        self.metrics.attach(self.bus)
        self.notifier.start(self.bus)

    def start(self, identity: Union[DeliveryPreferences, Mapping[str, Any]]) -> ConnectionState:
        """Authenticated session began: load preferences and connect."""
        self.dispatcher.initialize(identity)
        state = self.bus.connect()
        logger.info(f"Session started for {self.dispatcher.email or '<anonymous>'}: {state.value}")
        return state

    def preferences_changed(self, changes: Mapping[str, Any]) -> None:
        """
        Apply a partial preference update from the identity collaborator.

        See EmailDispatcher.update_preferences for the accepted keys.
        """
        self.dispatcher.update_preferences(changes)

    def end(self) -> ConnectionState:
        """Session ended: stop delivering events. Consumers keep their state."""
        state = self.bus.disconnect()
        logger.info("Session ended")
        return state

    async def drain(self) -> list[DispatchResult]:
        """Wait for outstanding email dispatches. Returns their results."""
        return await self.notifier.drain()
