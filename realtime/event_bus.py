"""
In-memory event bus with connection lifecycle.

This is the single logical channel between producers (the backend feed, the
event simulator) and consumers (notification store, live metrics, email
notifier). In production the transport behind it would be a websocket; the
bus keeps the same connected/disconnected semantics.

Design decisions:
- Synchronous delivery in registration order, on the publisher's call stack
- Kind-based subscriptions plus an optional wildcard subscription
- Subscriptions survive disconnects; only delivery is paused
- Publishing while disconnected is dropped with a warning, never raised
- Connection failures are reported to state observers, never raised
- A handler that raises is logged and does not stop the other handlers
- A bounded log of recent events is kept for debugging

Publishers don't know who is listening, and subscribers don't know who is
publishing.
"""

import copy
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4

from common.clock import Clock, SystemClock
from realtime.events import kind_value

logger = logging.getLogger("event_bus")


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class Event:
    """
    An immutable record of something that happened.

    Attributes:
        kind: Event kind used for routing (e.g. "entity:created")
        payload: Read-only event data
        occurred_at: When the bus accepted the event
        event_id: Unique identifier for this event instance
    """
    kind: str
    payload: Mapping[str, Any]
    occurred_at: datetime
    event_id: str = field(default_factory=lambda: str(uuid4()))

    def __str__(self) -> str:
        return f"Event({self.kind}, id={self.event_id[:8]})"

    def payload_dict(self) -> dict[str, Any]:
        """Mutable deep copy of the payload (nested mappings become dicts, sequences lists)."""
        return thaw(self.payload)


def freeze(value: Any) -> Any:
    """Deep-copy a value into read-only form: mappings become MappingProxyType, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(freeze(item) for item in value)
    return copy.deepcopy(value)


def thaw(value: Any) -> Any:
    """Inverse of freeze(): a fresh, mutable deep copy."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return copy.deepcopy(value)


EventHandler = Callable[[Event], None]
StateObserver = Callable[[ConnectionState], None]

WILDCARD = "*"


class EventBus:
    """
    Pub/sub bus with connect/disconnect semantics.

    Example usage:
        bus = EventBus()
        bus.subscribe("entity:created", lambda event: print(event.payload))
        bus.connect()
        bus.publish("entity:created", {"trackingNumber": "CST099"})
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        connector: Optional[Callable[[], None]] = None,
        event_log_size: int = 100,
    ):
        """
        Initialize the bus in the disconnected state.

        Args:
            clock: Source of ``occurred_at`` timestamps
            connector: Called by connect() to open the underlying channel; may raise
            event_log_size: How many recent events to keep for debugging (0 disables)
        """
        self.clock = clock or SystemClock()
        self.connector = connector
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._state_observers: list[StateObserver] = []
        self._state = ConnectionState.DISCONNECTED
        self._event_log: deque[Event] = deque(maxlen=event_log_size)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def on_state_change(self, observer: StateObserver) -> None:
        """Register a callback for connection state transitions and failed connects."""
        self._state_observers.append(observer)

    def connect(self) -> ConnectionState:
        """
        Open the channel. Re-entering ``connected`` after a disconnect is allowed.

        Returns:
            The resulting state; DISCONNECTED if the connector failed.
        """
        if self.is_connected:
            return self._state

        if self.connector is not None:
            try:
                self.connector()
            except Exception as e:
                logger.error(f"Failed to connect to real-time updates: {e}")
                self._notify_state()
                return self._state

        self._set_state(ConnectionState.CONNECTED)
        logger.info("Connected to real-time updates")
        return self._state

    def disconnect(self) -> ConnectionState:
        """Pause delivery. Subscriptions are kept for the next connect()."""
        if self.is_connected:
            self._set_state(ConnectionState.DISCONNECTED)
            logger.info("Real-time connection closed")
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        self._notify_state()

    def _notify_state(self) -> None:
        for observer in list(self._state_observers):
            try:
                observer(self._state)
            except Exception as e:
                logger.error(f"State observer raised: {e}")

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, kind: Any, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific kind.

        Note: The same handler can be subscribed multiple times (will be called multiple times).
        """
        self._subscribers[kind_value(kind)].append(handler)
        logger.debug(f"Subscribed handler to '{kind_value(kind)}' events")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to every event (useful for logging or audit)."""
        self._subscribers[WILDCARD].append(handler)

    def unsubscribe(self, kind: Any, handler: EventHandler) -> bool:
        """
        Remove one registration of a handler.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        try:
            self._subscribers[kind_value(kind)].remove(handler)
            logger.debug(f"Unsubscribed handler from '{kind_value(kind)}' events")
            return True
        except ValueError:
            return False

    def get_subscriber_count(self, kind: Any) -> int:
        return len(self._subscribers.get(kind_value(kind), []))

    def clear_subscribers(self) -> None:
        """Remove all subscribers (useful for testing)."""
        self._subscribers.clear()

    # =========================================================================
    # Publishing
    # =========================================================================

    def publish(self, kind: Any, payload: Optional[Mapping[str, Any]] = None) -> int:
        """
        Deliver an event to every current subscriber of its kind.

        Args:
            kind: Event kind (EventKind or any string)
            payload: Event data; deep-copied and frozen before delivery, so
                neither the publisher nor any handler can change what the
                others (or the event log) see

        Returns:
            Number of handlers that received the event (0 when disconnected)
        """
        kind = kind_value(kind)
        if not self.is_connected:
            logger.warning(f"Not connected, dropping '{kind}' event")
            return 0

        event = Event(
            kind=kind,
            payload=freeze(payload or {}),
            occurred_at=self.clock.now(),
        )
        self._event_log.append(event)
        logger.info(f"Publishing: {event}")

        # Snapshot the handler lists so handlers may (un)subscribe while we iterate
        handlers = list(self._subscribers.get(kind, [])) + list(self._subscribers.get(WILDCARD, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler raised exception for {event}: {e}")

        if not handlers:
            logger.debug(f"No handlers for event kind '{kind}'")
        return len(handlers)

    def get_event_log(self) -> list[Event]:
        """Recent published events, oldest first."""
        return list(self._event_log)

    def clear_event_log(self) -> None:
        self._event_log.clear()
