"""
Models for the email delivery side channel.

Design decisions:
- Using Pydantic for validation and serialization
- Categories are plain strings so new categories can be registered at
  runtime; the built-in ones are listed in DeliveryCategory
- The identity collaborator speaks camelCase (``shipmentCreated``); we
  normalise to snake_case once, when preferences enter the system
- Results are values, never exceptions: callers inspect ``success`` and
  ``reason``
"""

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class DeliveryCategory(str, Enum):
    """Built-in email categories, each with its own preference flag."""
    SHIPMENT_CREATED = "shipment_created"
    SHIPMENT_DELIVERED = "shipment_delivered"
    SHIPMENT_DELAYED = "shipment_delayed"
    SYSTEM_ALERT = "system_alert"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class DispatchReason(str, Enum):
    """Why a dispatch did not result in a sent email."""
    DISABLED = "disabled"                    # Master email flag is off
    CATEGORY_DISABLED = "category_disabled"  # User opted out of this category
    NO_TEMPLATE = "no_template"              # Nothing registered for the category
    NO_RECIPIENTS = "no_recipients"          # No explicit recipients and no user address
    SERVICE_ERROR = "service_error"          # Transport failed or timed out


# Session payloads use the frontend's names; several map onto one category.
CATEGORY_ALIASES: dict[str, str] = {
    "shipmentCreated": DeliveryCategory.SHIPMENT_CREATED.value,
    "shipmentDelivered": DeliveryCategory.SHIPMENT_DELIVERED.value,
    "shipmentDelayed": DeliveryCategory.SHIPMENT_DELAYED.value,
    "systemAlerts": DeliveryCategory.SYSTEM_ALERT.value,
    "systemAlert": DeliveryCategory.SYSTEM_ALERT.value,
}


def normalize_category(name: str) -> str:
    """Map a camelCase session category name to its internal name."""
    if isinstance(name, Enum):
        return name.value
    return CATEGORY_ALIASES.get(name, name)


def default_categories() -> dict[str, bool]:
    """Every built-in category enabled."""
    return {category.value: True for category in DeliveryCategory}


# =============================================================================
# Preferences
# =============================================================================

class DeliveryPreferences(BaseModel):
    """
    Snapshot of one user's email preferences.

    Owned by the identity/session collaborator. The dispatcher copies it at
    initialization and only changes its own copy through explicit
    reconfiguration calls.
    """
    email: Optional[str] = Field(default=None, description="Default recipient address")
    enabled: bool = Field(default=True, description="Master email switch")
    categories: dict[str, bool] = Field(
        default_factory=default_categories,
        description="Per-category opt-in flags",
    )

    @classmethod
    def from_session(cls, session: Mapping[str, Any]) -> "DeliveryPreferences":
        """
        Build preferences from an identity payload.

        Accepts ``{"email": ..., "notificationPreferences": {...}}`` (the
        older ``notifications`` key is also read). Inside the flag map the
        ``email`` key is the master switch and every other key is a
        category flag. Categories that are not mentioned stay enabled.
        """
        flags = dict(
            session.get("notificationPreferences")
            or session.get("notifications")
            or {}
        )
        enabled = bool(flags.pop("email", True))
        categories = default_categories()
        for name, value in flags.items():
            categories[normalize_category(name)] = bool(value)
        return cls(email=session.get("email"), enabled=enabled, categories=categories)


# =============================================================================
# Messages, queue entries and results
# =============================================================================

class EmailMessage(BaseModel):
    """A rendered email, ready for a transport."""
    to: list[str]
    subject: str
    body: str
    category: str


class QueuedDelivery(BaseModel):
    """
    Record of a completed send, kept in the dispatcher's ring buffer.

    Created only after the transport resolves and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: int
    category: str
    to: list[str]
    subject: str
    body: str
    timestamp: datetime
    status: DeliveryStatus = DeliveryStatus.SENT
    message_id: Optional[str] = None


class DispatchResult(BaseModel):
    """Outcome of one dispatch call."""
    model_config = ConfigDict(use_enum_values=True)

    success: bool
    reason: Optional[DispatchReason] = None
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def suppressed(cls, reason: DispatchReason, error: Optional[str] = None) -> "DispatchResult":
        return cls(success=False, reason=reason, error=error)


class DeliveryStats(BaseModel):
    """Queue statistics computed at call time."""
    total: int
    sent: int
    failed: int
    success_rate: float
