"""
Preference-gated email dispatcher.

The dispatcher is the only asynchronous part of the pipeline. For each
dispatch it checks the user's preferences, renders the category template,
hands the message to a transport and records successful sends in a bounded
queue.

Design decisions:
- One instance per session, constructed with its collaborators (transport,
  clock, templates); there is no module-level singleton
- Every outcome is a DispatchResult; nothing is raised to the caller
- Preference checks happen in a fixed order: master flag, category flag,
  template, recipients
- Transport calls run under a real timeout; a timeout counts as a
  service error
- The queue is a newest-first ring buffer. Concurrent dispatches append in
  completion order, which is not necessarily call order
- Statistics are computed from the queue when asked, not kept as counters
"""

import asyncio
import itertools
import logging
from collections import deque
from typing import Any, Mapping, Optional, Union

from common.clock import Clock, SystemClock
from delivery.models import (
    DeliveryCategory,
    DeliveryPreferences,
    DeliveryStats,
    DeliveryStatus,
    DispatchReason,
    DispatchResult,
    EmailMessage,
    QueuedDelivery,
    normalize_category,
)
from delivery.templates import TEMPLATES, EmailTemplate, sample_shipment_payload
from delivery.transport import EmailTransport, SimulatedEmailTransport

logger = logging.getLogger("email_dispatcher")


class EmailDispatcher:
    """
    Templated, preference-aware email sender with a send queue.

    Example:
        dispatcher = EmailDispatcher(transport=SimulatedEmailTransport())
        dispatcher.initialize({"email": "ops@example.com",
                               "notificationPreferences": {"email": True}})

        result = await dispatcher.dispatch("shipment_created",
                                           {"trackingNumber": "CST099"})
        if not result.success:
            print(result.reason)
    """

    def __init__(
        self,
        transport: Optional[EmailTransport] = None,
        clock: Optional[Clock] = None,
        templates: Optional[Mapping[str, EmailTemplate]] = None,
        queue_capacity: int = 50,
        send_timeout: float = 10.0,
    ):
        """
        Initialize the dispatcher.

        Args:
            transport: Where rendered emails are sent (defaults to a simulated transport)
            clock: Clock for queue timestamps
            templates: Category -> template registry (defaults to the built-in templates)
            queue_capacity: Maximum queued deliveries kept
            send_timeout: Seconds to wait for the transport before giving up
        """
        if queue_capacity <= 0:
            raise ValueError(f"queue_capacity must be positive, got {queue_capacity}")
        self.clock = clock or SystemClock()
        self.transport = transport or SimulatedEmailTransport(clock=self.clock)
        self.templates: dict[str, EmailTemplate] = dict(templates if templates is not None else TEMPLATES)
        self.send_timeout = send_timeout

        self._queue: deque[QueuedDelivery] = deque(maxlen=queue_capacity)
        self._ids = itertools.count(1)

        # Until initialize() is called everything is on and there is no default recipient
        self.enabled = True
        self.email: Optional[str] = None
        self._categories: dict[str, bool] = DeliveryPreferences().categories

    # =========================================================================
    # Configuration
    # =========================================================================

    def initialize(self, preferences: Union[DeliveryPreferences, Mapping[str, Any]]) -> None:
        """
        Load a preference snapshot. Safe to call again to hot-swap preferences.

        Args:
            preferences: A DeliveryPreferences, or a raw session payload
                (``{"email": ..., "notificationPreferences": {...}}``)
        """
        if not isinstance(preferences, DeliveryPreferences):
            preferences = DeliveryPreferences.from_session(preferences)

        self.enabled = preferences.enabled
        self.email = preferences.email
        self._categories = {normalize_category(k): v for k, v in preferences.categories.items()}
        logger.info(
            f"Email dispatcher initialized for {self.email or '<no address>'} "
            f"(enabled={self.enabled})"
        )

    def set_enabled(self, enabled: bool) -> None:
        """Flip the master switch. Dispatches already in flight are unaffected."""
        self.enabled = enabled
        logger.info(f"Email notifications {'enabled' if enabled else 'disabled'}")

    def update_preferences(self, changes: Mapping[str, Any]) -> None:
        """
        Apply a partial preference update.

        A boolean ``email`` key toggles the master switch and a string one
        replaces the default address. Every other key is a category flag;
        camelCase session names are accepted.
        """
        changes = dict(changes)
        if "email" in changes:
            email = changes.pop("email")
            if isinstance(email, str):
                self.email = email
                logger.info(f"Email address changed to {email}")
            else:
                self.set_enabled(bool(email))
        for name, value in changes.items():
            self._categories[normalize_category(name)] = bool(value)
        if changes:
            logger.info(f"Email categories updated: {self._categories}")

    def register_template(self, category: str, template: EmailTemplate) -> None:
        self.templates[normalize_category(category)] = template

    @property
    def categories(self) -> dict[str, bool]:
        return dict(self._categories)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(
        self,
        category: Union[str, DeliveryCategory],
        payload: Optional[Mapping[str, Any]] = None,
        recipients: Optional[list[str]] = None,
    ) -> DispatchResult:
        """
        Render and send one email for a category.

        Args:
            category: Delivery category (e.g. "shipment_created")
            payload: Data for the template placeholders
            recipients: Addresses to send to; defaults to the session user's address

        Returns:
            DispatchResult. ``reason`` explains any unsuccessful outcome.
        """
        category = normalize_category(category)
        payload = payload or {}

        if not self.enabled:
            logger.info("Email notifications are disabled")
            return DispatchResult.suppressed(DispatchReason.DISABLED)

        if not self._categories.get(category, False):
            logger.info(f"Email notifications for {category} are disabled")
            return DispatchResult.suppressed(DispatchReason.CATEGORY_DISABLED)

        template = self.templates.get(category)
        if template is None:
            logger.error(f"No email template found for category: {category}")
            return DispatchResult.suppressed(DispatchReason.NO_TEMPLATE)

        to = list(recipients) if recipients else ([self.email] if self.email else [])
        if not to:
            logger.warning(f"No recipients for {category} email and no default address")
            return DispatchResult.suppressed(DispatchReason.NO_RECIPIENTS)

        missing = template.missing_fields(payload)
        if missing:
            logger.debug(f"{category} payload is missing template fields: {missing}")

        subject, body = template.render(payload)
        message = EmailMessage(to=to, subject=subject, body=body, category=category)

        try:
            receipt = await asyncio.wait_for(self.transport.send(message), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Email send for {category} timed out after {self.send_timeout}s")
            return DispatchResult.suppressed(
                DispatchReason.SERVICE_ERROR, error=f"timed out after {self.send_timeout}s"
            )
        except Exception as e:
            logger.exception(f"Email transport raised while sending {category}")
            return DispatchResult.suppressed(DispatchReason.SERVICE_ERROR, error=str(e))

        if not receipt.success:
            return DispatchResult.suppressed(DispatchReason.SERVICE_ERROR, error=receipt.error)

        self._queue.appendleft(
            QueuedDelivery(
                id=next(self._ids),
                category=category,
                to=to,
                subject=subject,
                body=body,
                timestamp=receipt.timestamp,
                status=DeliveryStatus.SENT,
                message_id=receipt.message_id,
            )
        )
        logger.info(f"Email notification sent for {category}: {subject}")
        return DispatchResult(success=True, message_id=receipt.message_id)

    async def send_test(self, recipient: str) -> DispatchResult:
        """Send the shipment-created template with fixed test data."""
        payload = sample_shipment_payload(self.clock.now().date().isoformat())
        return await self.dispatch(DeliveryCategory.SHIPMENT_CREATED, payload, [recipient])

    # =========================================================================
    # Queue access
    # =========================================================================

    def queue(self) -> list[QueuedDelivery]:
        """Queued deliveries, most recently completed first."""
        return list(self._queue)

    def stats(self) -> DeliveryStats:
        """Counts and success rate over the current queue contents."""
        total = len(self._queue)
        sent = sum(1 for d in self._queue if d.status == DeliveryStatus.SENT)
        failed = sum(1 for d in self._queue if d.status == DeliveryStatus.FAILED)
        success_rate = round(sent / total * 100, 1) if total else 0.0
        return DeliveryStats(total=total, sent=sent, failed=failed, success_rate=success_rate)
