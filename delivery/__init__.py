"""
Email delivery side channel.

- Preference and queue models
- Email templates per delivery category
- Transports (simulated, SendGrid)
- The preference-gated EmailDispatcher
"""

from delivery.dispatcher import EmailDispatcher
from delivery.models import (
    DeliveryCategory,
    DeliveryPreferences,
    DeliveryStats,
    DeliveryStatus,
    DispatchReason,
    DispatchResult,
    EmailMessage,
    QueuedDelivery,
)
from delivery.templates import TEMPLATES, EmailTemplate
from delivery.transport import (
    SendGridEmailTransport,
    SendReceipt,
    SimulatedEmailTransport,
    build_transport,
)

__all__ = [
    "EmailDispatcher",
    "DeliveryCategory",
    "DeliveryPreferences",
    "DeliveryStats",
    "DeliveryStatus",
    "DispatchReason",
    "DispatchResult",
    "EmailMessage",
    "QueuedDelivery",
    "TEMPLATES",
    "EmailTemplate",
    "SendGridEmailTransport",
    "SendReceipt",
    "SimulatedEmailTransport",
    "build_transport",
]
