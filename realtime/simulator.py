"""
Synthetic event generator for demos and manual testing.

The simulator is an external producer: it only calls ``bus.publish`` and the
pipeline does not depend on it. Timing goes through the injected clock.
"""

import logging
import random
from typing import Any, Optional

from common.clock import Clock
from realtime import events
from realtime.event_bus import EventBus
from realtime.events import EventKind

logger = logging.getLogger("event_simulator")

ROUTES = [
    ("New York, USA", "London, UK"),
    ("Tokyo, Japan", "Paris, France"),
    ("Shanghai, China", "Rotterdam, NL"),
    ("Santos, Brazil", "Hamburg, DE"),
]
CARGO = ["Electronics", "Textiles", "Machinery", "Pharmaceuticals", "Furniture"]
DELAY_REASONS = ["Port congestion", "Customs inspection", "Severe weather", "Vessel maintenance"]
ALERTS = [
    ("Weather alert: Storm approaching shipping route", "high"),
    ("System maintenance scheduled for tonight at 2 AM", "medium"),
    ("Carrier API latency above threshold", "low"),
]


class EventSimulator:
    """
    Publishes randomized shipment and alert events onto a bus.

    Example:
        simulator = EventSimulator(session.bus, rng=random.Random(7))
        simulator.trigger(EventKind.ENTITY_CREATED)
        await simulator.run(count=10, interval=2.0)
    """

    KINDS = [
        EventKind.ENTITY_CREATED,
        EventKind.ENTITY_UPDATED,
        EventKind.ENTITY_DELIVERED,
        EventKind.SYSTEM_ALERT,
        EventKind.ENTITY_DELAYED,
    ]

    def __init__(
        self,
        bus: EventBus,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self.bus = bus
        self.clock = clock or bus.clock
        self.rng = rng or random.Random()
        self._running = False

    def _tracking_number(self) -> str:
        return f"CST{self.rng.randint(0, 999):03d}"

    def sample_payload(self, kind: EventKind) -> dict[str, Any]:
        """Plausible payload for one of the simulated kinds."""
        now = self.clock.now()
        origin, destination = self.rng.choice(ROUTES)

        if kind == EventKind.ENTITY_CREATED:
            return events.shipment_created(
                self._tracking_number(),
                origin=origin,
                destination=destination,
                cargo=self.rng.choice(CARGO),
                estimated_delivery=now.date().isoformat(),
                weight=f"{self.rng.randint(50, 5000)} kg",
            )
        if kind == EventKind.ENTITY_UPDATED:
            return events.shipment_updated(self._tracking_number(), "In Transit", location="Atlantic Ocean")
        if kind == EventKind.ENTITY_DELIVERED:
            return events.shipment_delivered(
                self._tracking_number(),
                recipient="John Smith",
                delivery_time=now.isoformat(),
                destination=destination,
            )
        if kind == EventKind.ENTITY_DELAYED:
            return events.shipment_delayed(
                self._tracking_number(),
                reason=self.rng.choice(DELAY_REASONS),
                current_location=origin,
            )
        if kind == EventKind.SYSTEM_ALERT:
            message, priority = self.rng.choice(ALERTS)
            return events.system_alert(message, priority=priority, affectedShipments=self.rng.randint(1, 10))
        raise ValueError(f"Simulator has no sample payload for {kind}")

    def trigger(self, kind: EventKind) -> int:
        """Publish one sample event of the given kind."""
        payload = self.sample_payload(kind)
        handlers = self.bus.publish(kind, payload)
        logger.info(f"Simulated {kind.value} ({handlers} handlers)")
        return handlers

    def trigger_random(self) -> EventKind:
        kind = self.rng.choice(self.KINDS)
        self.trigger(kind)
        return kind

    async def run(self, count: int, interval: float = 3.0) -> list[EventKind]:
        """Publish ``count`` random events, ``interval`` seconds apart."""
        self._running = True
        published: list[EventKind] = []
        try:
            for i in range(count):
                if not self._running:
                    break
                if i:
                    await self.clock.sleep(interval)
                published.append(self.trigger_random())
        finally:
            self._running = False
        return published

    def stop(self) -> None:
        self._running = False
