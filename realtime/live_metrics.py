"""
Dashboard counters maintained incrementally from the event stream.

Each relevant event applies a fixed delta to one or two counters instead of
recounting the shipment store. The stream is the only timely signal we get,
and a full rescan per event would not scale to a remote or unbounded store.

Delta table:
    entity:created    total += 1, active += 1
    entity:delivered  delivered_today += 1, active -= 1 (floored at 0)
    entity:delayed    delayed += 1
    entity:cancelled  active -= 1 (floored at 0)
    stats:update      counters present in the payload replace ours

Counters never go negative. ``delivered_today`` starts from zero on the first
event of a new calendar day (per the injected clock).
"""

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, Field

from common.clock import Clock, SystemClock
from common.templating import render
from realtime.event_bus import Event, EventBus
from realtime.events import EventKind

logger = logging.getLogger("live_metrics")


class ActivityEntry(BaseModel):
    id: int
    kind: str
    icon: str
    message: str
    timestamp: datetime


class LiveMetrics(BaseModel):
    """Point-in-time view of the dashboard."""
    total_count: int = 0
    active_count: int = 0
    delivered_today_count: int = 0
    pending_count: int = 0
    delayed_count: int = 0
    last_update: Optional[datetime] = None
    recent_activity: list[ActivityEntry] = Field(default_factory=list)


# Counter names accepted in a stats:update payload, mapped to ours
STATS_FIELDS: dict[str, str] = {
    "totalShipments": "total_count",
    "activeShipments": "active_count",
    "deliveredToday": "delivered_today_count",
    "pendingShipments": "pending_count",
    "delayedShipments": "delayed_count",
    "total_count": "total_count",
    "active_count": "active_count",
    "delivered_today_count": "delivered_today_count",
    "pending_count": "pending_count",
    "delayed_count": "delayed_count",
}


@dataclass
class _Counters:
    total_count: int = 0
    active_count: int = 0
    delivered_today_count: int = 0
    pending_count: int = 0
    delayed_count: int = 0

    def bump(self, name: str, delta: int) -> None:
        setattr(self, name, max(0, getattr(self, name) + delta))


def _created(c: _Counters, payload: Mapping[str, Any]) -> None:
    c.bump("total_count", 1)
    c.bump("active_count", 1)


def _delivered(c: _Counters, payload: Mapping[str, Any]) -> None:
    c.bump("delivered_today_count", 1)
    c.bump("active_count", -1)


def _delayed(c: _Counters, payload: Mapping[str, Any]) -> None:
    c.bump("delayed_count", 1)


def _cancelled(c: _Counters, payload: Mapping[str, Any]) -> None:
    c.bump("active_count", -1)


def _replace(c: _Counters, payload: Mapping[str, Any]) -> None:
    for key, value in payload.items():
        name = STATS_FIELDS.get(key)
        if name is None:
            continue
        try:
            setattr(c, name, max(0, int(value)))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric stats field {key}={value!r}")


@dataclass(frozen=True)
class MetricsRule:
    apply: Callable[[_Counters, Mapping[str, Any]], None]
    icon: str
    message_template: str


METRICS_RULES: dict[str, MetricsRule] = {
    EventKind.ENTITY_CREATED.value: MetricsRule(_created, "📦", "New shipment {{trackingNumber}} created"),
    EventKind.ENTITY_DELIVERED.value: MetricsRule(_delivered, "✅", "Shipment {{trackingNumber}} delivered"),
    EventKind.ENTITY_DELAYED.value: MetricsRule(_delayed, "⚠️", "Shipment {{trackingNumber}} delayed"),
    EventKind.ENTITY_CANCELLED.value: MetricsRule(_cancelled, "🚫", "Shipment {{trackingNumber}} cancelled"),
    EventKind.STATS_UPDATE.value: MetricsRule(_replace, "📊", "Dashboard statistics synchronized"),
}


class LiveMetricsAggregator:
    """
    Rolling dashboard counters plus a short recent-activity list.

    Example:
        metrics = LiveMetricsAggregator()
        metrics.attach(bus)
        bus.publish("entity:created", {"trackingNumber": "CST099"})
        metrics.snapshot().active_count  # 1
    """

    def __init__(self, activity_capacity: int = 10, clock: Optional[Clock] = None):
        if activity_capacity <= 0:
            raise ValueError(f"activity_capacity must be positive, got {activity_capacity}")
        self.clock = clock or SystemClock()
        self._counters = _Counters()
        self._activity: deque[ActivityEntry] = deque(maxlen=activity_capacity)
        self._ids = itertools.count(1)
        self._last_update: Optional[datetime] = None
        self._day: Optional[date] = None

    def attach(self, bus: EventBus) -> None:
        for kind in METRICS_RULES:
            bus.subscribe(kind, self.on_event)

    def detach(self, bus: EventBus) -> None:
        for kind in METRICS_RULES:
            bus.unsubscribe(kind, self.on_event)

    def on_event(self, event: Event) -> bool:
        """
        Apply the delta for one event.

        Returns:
            True if the event changed the metrics, False for unknown kinds.
        """
        rule = METRICS_RULES.get(event.kind)
        if rule is None:
            return False

        now = self.clock.now()
        self._roll_day(now.date())
        rule.apply(self._counters, event.payload)
        self._last_update = now
        self._activity.appendleft(
            ActivityEntry(
                id=next(self._ids),
                kind=event.kind,
                icon=rule.icon,
                message=render(rule.message_template, event.payload),
                timestamp=now,
            )
        )
        return True

    def _roll_day(self, today: date) -> None:
        if self._day is not None and today != self._day:
            logger.info(f"New day {today}, resetting delivered-today count")
            self._counters.delivered_today_count = 0
        self._day = today

    def snapshot(self) -> LiveMetrics:
        """Copy of the current counters and activity list."""
        c = self._counters
        return LiveMetrics(
            total_count=c.total_count,
            active_count=c.active_count,
            delivered_today_count=c.delivered_today_count,
            pending_count=c.pending_count,
            delayed_count=c.delayed_count,
            last_update=self._last_update,
            recent_activity=[a.model_copy() for a in self._activity],
        )
