"""
Email templates for shipment and system notifications.

Templates use ``{{path}}`` placeholders rendered by common.templating, so a
field missing from the event payload shows up as its own name in the email
rather than breaking the send.

Design decisions:
- One template per delivery category, subject plus HTML body
- Templates are plain data; TEMPLATES is the default registry and the
  dispatcher takes its own copy so tests can register extra categories
- In a production system, templates might be stored in a database for
  runtime editing or localized per user
"""

from dataclasses import dataclass
from typing import Any, Mapping

from common.templating import find_placeholders, render, resolve_path
from delivery.models import DeliveryCategory


@dataclass(frozen=True)
class EmailTemplate:
    """A subject/body pair rendered against one payload."""
    subject: str
    body: str

    def render(self, data: Mapping[str, Any]) -> tuple[str, str]:
        """
        Render the template with the provided payload.

        Returns:
            Tuple of (subject, body)
        """
        return render(self.subject, data), render(self.body, data)

    def missing_fields(self, data: Mapping[str, Any]) -> list[str]:
        """Placeholder paths the payload does not resolve."""
        return [
            path
            for path in find_placeholders(self.subject + self.body)
            if resolve_path(data, path) is None
        ]


# =============================================================================
# Template Definitions
# =============================================================================

TEMPLATES: dict[str, EmailTemplate] = {

    DeliveryCategory.SHIPMENT_CREATED.value: EmailTemplate(
        subject="New Shipment Created - {{trackingNumber}}",
        body="""
<h2>New Shipment Created</h2>
<p>A new shipment has been created with the following details:</p>
<ul>
  <li><strong>Tracking Number:</strong> {{trackingNumber}}</li>
  <li><strong>Origin:</strong> {{origin}}</li>
  <li><strong>Destination:</strong> {{destination}}</li>
  <li><strong>Cargo:</strong> {{cargo}}</li>
  <li><strong>Estimated Delivery:</strong> {{estimatedDelivery}}</li>
</ul>
<p>You can track this shipment using the tracking number above.</p>
""",
    ),

    DeliveryCategory.SHIPMENT_DELIVERED.value: EmailTemplate(
        subject="Shipment Delivered - {{trackingNumber}}",
        body="""
<h2>Shipment Successfully Delivered</h2>
<p>Your shipment has been successfully delivered:</p>
<ul>
  <li><strong>Tracking Number:</strong> {{trackingNumber}}</li>
  <li><strong>Delivered To:</strong> {{recipient}}</li>
  <li><strong>Delivery Time:</strong> {{deliveryTime}}</li>
  <li><strong>Destination:</strong> {{destination}}</li>
</ul>
<p>Thank you for using our cargo tracking service!</p>
""",
    ),

    DeliveryCategory.SHIPMENT_DELAYED.value: EmailTemplate(
        subject="Shipment Delayed - {{trackingNumber}}",
        body="""
<h2>Shipment Delay Notification</h2>
<p>We regret to inform you that your shipment has been delayed:</p>
<ul>
  <li><strong>Tracking Number:</strong> {{trackingNumber}}</li>
  <li><strong>Reason:</strong> {{reason}}</li>
  <li><strong>New Estimated Delivery:</strong> {{newEstimatedDelivery}}</li>
  <li><strong>Current Location:</strong> {{currentLocation}}</li>
</ul>
<p>We apologize for any inconvenience and are working to minimize the delay.</p>
""",
    ),

    DeliveryCategory.SYSTEM_ALERT.value: EmailTemplate(
        subject="System Alert - {{alertType}}",
        body="""
<h2>System Alert Notification</h2>
<p>A system alert has been triggered:</p>
<ul>
  <li><strong>Alert Type:</strong> {{alertType}}</li>
  <li><strong>Priority:</strong> {{priority}}</li>
  <li><strong>Message:</strong> {{message}}</li>
  <li><strong>Time:</strong> {{timestamp}}</li>
</ul>
<p>Please review this alert and take appropriate action if necessary.</p>
""",
    ),
}


def sample_shipment_payload(estimated_delivery: str) -> dict[str, str]:
    """Fixed shipment data used by the "send test email" action."""
    return {
        "trackingNumber": "TEST001",
        "origin": "Test Origin",
        "destination": "Test Destination",
        "cargo": "Test Cargo",
        "estimatedDelivery": estimated_delivery,
    }

