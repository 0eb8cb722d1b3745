"""
Event vocabulary for the real-time bus.

The event kinds below are the contract with every producer (the backend, the
event simulator, tests). They must stay stable: consumers route on these
exact strings.

Design decisions:
- Kinds are ``<domain>:<action>`` strings; the domain prefix doubles as the
  notification filter category
- Payloads keep the producers' camelCase field names (``trackingNumber``)
  because that is what templates reference
- Helper functions build properly structured payloads; producers are free
  to publish extra fields
"""

from enum import Enum
from typing import Any, Optional


class EventKind(str, Enum):
    """Known event kinds. The bus also accepts any other string."""
    # Shipment lifecycle
    ENTITY_CREATED = "entity:created"
    ENTITY_UPDATED = "entity:updated"
    ENTITY_DELIVERED = "entity:delivered"
    ENTITY_DELAYED = "entity:delayed"
    ENTITY_CANCELLED = "entity:cancelled"

    # System and user events
    SYSTEM_ALERT = "system:alert"
    USER_MENTION = "user:mention"

    # Full dashboard counter resync
    STATS_UPDATE = "stats:update"


def kind_value(kind: Any) -> str:
    """Plain string form of an event kind."""
    return kind.value if isinstance(kind, Enum) else str(kind)


def kind_category(kind: Any) -> str:
    """The domain prefix of a kind ("entity:created" -> "entity")."""
    return kind_value(kind).split(":", 1)[0]


# =============================================================================
# Shipment Events
# =============================================================================

def shipment_created(
    tracking_number: str,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    cargo: Optional[str] = None,
    estimated_delivery: Optional[str] = None,
    status: str = "Pending",
    **extra: Any,
) -> dict[str, Any]:
    """Payload for ENTITY_CREATED."""
    return {
        "trackingNumber": tracking_number,
        "status": status,
        "origin": origin,
        "destination": destination,
        "cargo": cargo,
        "estimatedDelivery": estimated_delivery,
        **extra,
    }


def shipment_updated(
    tracking_number: str,
    status: str,
    location: Optional[str] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Payload for ENTITY_UPDATED."""
    return {
        "trackingNumber": tracking_number,
        "status": status,
        "location": location,
        **extra,
    }


def shipment_delivered(
    tracking_number: str,
    recipient: Optional[str] = None,
    delivery_time: Optional[str] = None,
    destination: Optional[str] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Payload for ENTITY_DELIVERED."""
    return {
        "trackingNumber": tracking_number,
        "status": "Delivered",
        "recipient": recipient,
        "deliveryTime": delivery_time,
        "destination": destination,
        **extra,
    }


def shipment_delayed(
    tracking_number: str,
    reason: str,
    new_estimated_delivery: Optional[str] = None,
    current_location: Optional[str] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Payload for ENTITY_DELAYED."""
    return {
        "trackingNumber": tracking_number,
        "reason": reason,
        "newEstimatedDelivery": new_estimated_delivery,
        "currentLocation": current_location,
        **extra,
    }


def shipment_cancelled(tracking_number: str, reason: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    """Payload for ENTITY_CANCELLED."""
    return {"trackingNumber": tracking_number, "reason": reason, **extra}


# =============================================================================
# System / User Events
# =============================================================================

def system_alert(message: str, priority: str = "medium", **extra: Any) -> dict[str, Any]:
    """
    Payload for SYSTEM_ALERT.

    Only ``high`` priority alerts are emailed.
    """
    return {"message": message, "priority": priority, **extra}


def user_mention(message: str, mentioned_by: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    """Payload for USER_MENTION."""
    return {"message": message, "mentionedBy": mentioned_by, **extra}


def stats_update(
    total: int,
    active: int,
    delivered_today: int,
    pending: int,
    delayed: int,
) -> dict[str, Any]:
    """
    Payload for STATS_UPDATE.

    Uses the backend's counter names; the aggregator also accepts its own
    snake_case names.
    """
    return {
        "totalShipments": total,
        "activeShipments": active,
        "deliveredToday": delivered_today,
        "pendingShipments": pending,
        "delayedShipments": delayed,
    }
