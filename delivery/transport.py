"""
Email transports used by the delivery dispatcher.

A transport takes a rendered EmailMessage and reports what happened as a
SendReceipt. Transports never raise for delivery problems; the dispatcher
still guards against unexpected exceptions and timeouts.

Implementations:
- SimulatedEmailTransport: waits a fixed delay on the injected clock and
  fails with a configurable probability (default 5%)
- SendGridEmailTransport: sends through the SendGrid Web API

Design decisions:
- All sends are logged for visibility
- The simulated transport tracks every attempt for test assertions
- Randomness is injectable (random.Random) so failure patterns are
  reproducible under a fixed seed
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol
from uuid import uuid4

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from common.clock import Clock, SystemClock
from common.config import Settings
from delivery.models import EmailMessage

logger = logging.getLogger("email_transport")


@dataclass
class SendReceipt:
    """
    Result of a single transport call.

    Captures success/failure and metadata for debugging and testing.
    """
    success: bool
    message: EmailMessage
    timestamp: datetime
    message_id: Optional[str] = None
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"{status} EMAIL to {', '.join(self.message.to)}: {self.message.subject}"


class EmailTransport(Protocol):
    async def send(self, message: EmailMessage) -> SendReceipt:
        ...


class SimulatedEmailTransport:
    """
    Mock email transport.

    Models network latency with a fixed delay and a configurable failure
    probability. Keeps every attempt in ``sent_messages``.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        delay: float = 0.5,
        failure_rate: float = 0.05,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the simulated transport.

        Args:
            clock: Clock used for the simulated latency
            delay: Seconds to wait before resolving each send
            failure_rate: Probability of send failure (0.0 to 1.0)
            rng: Random source, seed it for reproducible failures
        """
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be between 0 and 1, got {failure_rate}")
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.clock = clock or SystemClock()
        self.delay = delay
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()
        self.sent_messages: list[SendReceipt] = []

    async def send(self, message: EmailMessage) -> SendReceipt:
        await self.clock.sleep(self.delay)
        now = self.clock.now()

        if self.rng.random() < self.failure_rate:
            receipt = SendReceipt(
                success=False,
                message=message,
                timestamp=now,
                error="Simulated email service error",
            )
            logger.error(f"[EMAIL FAILED] To: {message.to} | Subject: {message.subject} | Error: {receipt.error}")
        else:
            receipt = SendReceipt(
                success=True,
                message=message,
                timestamp=now,
                message_id=f"msg_{int(now.timestamp() * 1000)}_{uuid4().hex[:9]}",
            )
            logger.info(f"[EMAIL] To: {message.to} | Subject: {message.subject}")
            logger.debug(f"[EMAIL BODY] {message.body}")

        self.sent_messages.append(receipt)
        return receipt

    def get_sent_count(self) -> int:
        """Get the number of send attempts (for testing)."""
        return len(self.sent_messages)

    def get_successful_sends(self) -> list[SendReceipt]:
        return [m for m in self.sent_messages if m.success]

    def clear_history(self):
        """Clear send history (useful between tests)."""
        self.sent_messages.clear()


class SendGridEmailTransport:
    """
    Email transport backed by the SendGrid Web API.

    The SendGrid client is synchronous, so each send runs in a worker thread
    to keep the event loop free.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        clock: Optional[Clock] = None,
        client_factory: Callable[[str], Any] = SendGridAPIClient,
    ):
        self.sender = sender
        self.clock = clock or SystemClock()
        self._client = client_factory(api_key)

    def _deliver(self, message: EmailMessage) -> Any:
        mail = Mail(
            from_email=self.sender,
            to_emails=message.to,
            subject=message.subject,
            html_content=message.body,
        )
        return self._client.send(mail)

    async def send(self, message: EmailMessage) -> SendReceipt:
        try:
            response = await asyncio.to_thread(self._deliver, message)
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            logger.error(f"SendGrid API request failed (status {status_code}): {exc}")
            return SendReceipt(
                success=False,
                message=message,
                timestamp=self.clock.now(),
                error=f"SendGrid request failed: {exc}",
            )

        status_code = getattr(response, "status_code", None)
        if status_code is None or not 200 <= int(status_code) < 300:
            logger.error(f"SendGrid API responded with status {status_code}")
            return SendReceipt(
                success=False,
                message=message,
                timestamp=self.clock.now(),
                error=f"SendGrid responded with status {status_code}",
            )

        headers = getattr(response, "headers", None) or {}
        logger.info(f"[EMAIL] To: {message.to} | Subject: {message.subject} | via SendGrid")
        return SendReceipt(
            success=True,
            message=message,
            timestamp=self.clock.now(),
            message_id=headers.get("X-Message-Id"),
        )


def build_transport(settings: Settings, clock: Optional[Clock] = None) -> EmailTransport:
    """Create the transport selected by ``settings.email_transport``."""
    if settings.email_transport == "sendgrid":
        return SendGridEmailTransport(
            api_key=settings.sendgrid_api_key,
            sender=settings.sendgrid_sender,
            clock=clock,
        )
    return SimulatedEmailTransport(
        clock=clock,
        delay=settings.send_delay_seconds,
        failure_rate=settings.send_failure_rate,
    )
