"""
Bridges bus events to the email dispatcher.

The notifier subscribes to the shipment and alert events that warrant an
email, maps each to a delivery category, and schedules an asynchronous
dispatch. The bus handlers themselves stay synchronous.

Design decisions:
- All "when to email" logic is HERE; producers only publish events and the
  dispatcher only knows about categories and preferences
- Each dispatch runs as its own asyncio task, so a slow send never blocks
  the bus; completion order is not guaranteed
- Pending tasks are tracked so callers (tests, the API's ``wait`` option,
  the demo) can await them with drain()
- Only high-priority system alerts are emailed
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from delivery.dispatcher import EmailDispatcher
from delivery.models import DeliveryCategory, DispatchResult
from realtime.event_bus import Event, EventBus
from realtime.events import EventKind

logger = logging.getLogger("email_notifier")


class EmailNotifier:
    """
    Event-driven email fan-out.

    Example:
        notifier = EmailNotifier(dispatcher)
        notifier.start(bus)
        bus.publish("entity:created", {"trackingNumber": "CST099"})
        results = await notifier.drain()
    """

    def __init__(self, dispatcher: EmailDispatcher, keep_results: int = 50):
        self.dispatcher = dispatcher
        self.keep_results = keep_results
        self.results: list[DispatchResult] = []
        self._pending: set[asyncio.Task] = set()
        self._bus: Optional[EventBus] = None
        self._routes: dict[str, Callable[[Event], None]] = {
            EventKind.ENTITY_CREATED.value: self._handle_shipment_created,
            EventKind.ENTITY_DELIVERED.value: self._handle_shipment_delivered,
            EventKind.ENTITY_DELAYED.value: self._handle_shipment_delayed,
            EventKind.SYSTEM_ALERT.value: self._handle_system_alert,
        }

    def start(self, bus: EventBus) -> None:
        """Subscribe to every event kind we email about."""
        if self._bus is not None:
            logger.warning("EmailNotifier already started")
            return
        for kind, handler in self._routes.items():
            bus.subscribe(kind, handler)
        self._bus = bus
        logger.info("EmailNotifier started - subscribed to events")

    def stop(self) -> None:
        if self._bus is None:
            return
        for kind, handler in self._routes.items():
            self._bus.unsubscribe(kind, handler)
        self._bus = None
        logger.info("EmailNotifier stopped")

    @property
    def pending(self) -> int:
        return len(self._pending)

    # =========================================================================
    # Event Handlers
    # =========================================================================

    def _handle_shipment_created(self, event: Event) -> None:
        self._schedule(DeliveryCategory.SHIPMENT_CREATED, event.payload_dict())

    def _handle_shipment_delivered(self, event: Event) -> None:
        self._schedule(DeliveryCategory.SHIPMENT_DELIVERED, event.payload_dict())

    def _handle_shipment_delayed(self, event: Event) -> None:
        self._schedule(DeliveryCategory.SHIPMENT_DELAYED, event.payload_dict())

    def _handle_system_alert(self, event: Event) -> None:
        if event.payload.get("priority") != "high":
            return
        payload = {
            **event.payload_dict(),
            "alertType": "High Priority System Alert",
            "timestamp": event.occurred_at.isoformat(),
        }
        self._schedule(DeliveryCategory.SYSTEM_ALERT, payload)

    # =========================================================================
    # Task management
    # =========================================================================

    def _schedule(self, category: DeliveryCategory, payload: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; {category.value} email not sent")
            return

        task = loop.create_task(self.dispatcher.dispatch(category, payload))
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"Email dispatch crashed: {task.exception()!r}")
            return
        result = task.result()
        self.results.append(result)
        del self.results[:-self.keep_results]
        if not result.success:
            logger.info(f"Email not sent: {result.reason}")

    async def drain(self) -> list[DispatchResult]:
        """Wait for every dispatch scheduled so far. Returns their results."""
        results: list[DispatchResult] = []
        while self._pending:
            results.extend(await asyncio.gather(*list(self._pending)))
        return results
