"""
User-facing notification feed derived from bus events.

Design decisions:
- Notifications are created only from bus events, one per event, through a
  fixed per-kind rule; kinds without a rule are ignored here
- The feed is a newest-first ring buffer (50 by default); the oldest entry
  is evicted silently on overflow
- The unread counter always equals the number of unread entries. Evicting
  an unread entry lowers it too
- Reads return copies, so callers can't mutate the feed behind our back
"""

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.templating import render
from realtime.event_bus import Event, EventBus
from realtime.events import EventKind, kind_category

logger = logging.getLogger("notification_store")


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Notification(BaseModel):
    """One entry in the notification feed."""
    model_config = ConfigDict(use_enum_values=True)

    id: int
    kind: str
    icon: str
    title: str
    message: str
    timestamp: datetime
    read: bool = False
    priority: Priority = Priority.MEDIUM
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class NotificationRule:
    """How an event kind turns into a notification."""
    icon: str
    title: str
    message_template: str
    priority: Priority = Priority.MEDIUM
    # Take the priority from payload["priority"] when present
    priority_from_payload: bool = False

    def priority_for(self, payload: dict[str, Any]) -> Priority:
        if self.priority_from_payload:
            try:
                return Priority(payload.get("priority"))
            except ValueError:
                return self.priority
        return self.priority


NOTIFICATION_RULES: dict[str, NotificationRule] = {
    EventKind.ENTITY_CREATED.value: NotificationRule(
        icon="📦",
        title="New Shipment Created",
        message_template="Shipment {{trackingNumber}} has been created",
    ),
    EventKind.ENTITY_UPDATED.value: NotificationRule(
        icon="🔄",
        title="Shipment Updated",
        message_template="Shipment {{trackingNumber}} status changed to {{status}}",
        priority=Priority.LOW,
    ),
    EventKind.ENTITY_DELIVERED.value: NotificationRule(
        icon="✅",
        title="Shipment Delivered",
        message_template="Shipment {{trackingNumber}} has been delivered",
    ),
    EventKind.ENTITY_DELAYED.value: NotificationRule(
        icon="⚠️",
        title="Shipment Delayed",
        message_template="Shipment {{trackingNumber}} delayed: {{reason}}",
        priority=Priority.HIGH,
    ),
    EventKind.SYSTEM_ALERT.value: NotificationRule(
        icon="🚨",
        title="System Alert",
        message_template="{{message}}",
        priority_from_payload=True,
    ),
    EventKind.USER_MENTION.value: NotificationRule(
        icon="👤",
        title="You were mentioned",
        message_template="{{message}}",
    ),
}

# Filter names the presentation layer uses for a kind prefix
CATEGORY_ALIASES = {"shipments": "entity"}


class NotificationStore:
    """
    Bounded, newest-first notification feed with read/unread state.

    Example:
        store = NotificationStore()
        store.attach(bus)
        bus.publish("entity:created", {"trackingNumber": "CST099"})
        store.unread_count          # 1
        store.query("unread")[0].title
    """

    def __init__(self, capacity: int = 50):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.rules = dict(NOTIFICATION_RULES)
        self._entries: deque[Notification] = deque()
        self._unread = 0
        self._ids = itertools.count(1)

    # =========================================================================
    # Bus wiring
    # =========================================================================

    def attach(self, bus: EventBus) -> None:
        """Subscribe to every kind that has a notification rule."""
        for kind in self.rules:
            bus.subscribe(kind, self.on_event)

    def detach(self, bus: EventBus) -> None:
        for kind in self.rules:
            bus.unsubscribe(kind, self.on_event)

    def on_event(self, event: Event) -> Optional[Notification]:
        """
        Turn a bus event into a notification.

        Returns the new notification, or None when the kind has no rule.
        """
        rule = self.rules.get(event.kind)
        if rule is None:
            return None

        payload = event.payload_dict()
        notification = Notification(
            id=next(self._ids),
            kind=event.kind,
            icon=rule.icon,
            title=rule.title,
            message=render(rule.message_template, payload),
            timestamp=event.occurred_at,
            priority=rule.priority_for(payload),
            data=payload,
        )

        if len(self._entries) >= self.capacity:
            evicted = self._entries.pop()
            if not evicted.read:
                self._unread -= 1
        self._entries.appendleft(notification)
        self._unread += 1

        logger.debug(f"Notification {notification.id} added for {event.kind}")
        return notification

    # =========================================================================
    # Read-state mutations
    # =========================================================================

    def mark_read(self, notification_id: int) -> bool:
        """
        Mark one notification as read.

        Returns:
            True if an unread entry changed state; False if it was already read or absent.
        """
        for entry in self._entries:
            if entry.id == notification_id:
                if entry.read:
                    return False
                entry.read = True
                self._unread = max(0, self._unread - 1)
                return True
        return False

    def mark_all_read(self) -> int:
        """Mark every entry read. Returns how many changed."""
        changed = 0
        for entry in self._entries:
            if not entry.read:
                entry.read = True
                changed += 1
        self._unread = 0
        return changed

    def clear(self) -> int:
        """Drop every notification. Returns how many were removed."""
        removed = len(self._entries)
        self._entries.clear()
        self._unread = 0
        logger.info(f"Cleared {removed} notifications")
        return removed

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def unread_count(self) -> int:
        return self._unread

    def __len__(self) -> int:
        return len(self._entries)

    def query(self, filter: str = "all") -> list[Notification]:
        """
        Filtered copy of the feed, newest first.

        Args:
            filter: "all", "unread", a kind prefix ("entity", "system",
                "user", or the alias "shipments"), or an exact kind
        """
        if filter == "all":
            selected = list(self._entries)
        elif filter == "unread":
            selected = [n for n in self._entries if not n.read]
        else:
            category = CATEGORY_ALIASES.get(filter, filter)
            selected = [
                n for n in self._entries
                if n.kind == category or kind_category(n.kind) == category
            ]
        return [n.model_copy(deep=True) for n in selected]

    def get(self, notification_id: int) -> Optional[Notification]:
        for entry in self._entries:
            if entry.id == notification_id:
                return entry.model_copy(deep=True)
        return None
