"""
FastAPI application for the cargo real-time pipeline.

This application provides:
1. Session endpoints the identity layer calls on login, logout and
   preference changes
2. A publish endpoint for producers, plus the recent event log
3. Read endpoints for the presentation layer: notifications, live metrics,
   the email queue and its statistics

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from common.clock import Clock
from common.config import Settings, get_settings
from delivery.models import DeliveryStats, DispatchResult, QueuedDelivery
from delivery.transport import EmailTransport
from realtime.live_metrics import LiveMetrics
from realtime.notification_store import Notification
from realtime.session import RealtimeSession

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("api")


# Request / response models
class SessionRequest(BaseModel):
    """Identity payload sent when a user session begins."""
    email: Optional[str] = None
    notificationPreferences: dict[str, bool] = Field(default_factory=dict)


class ConnectionStatus(BaseModel):
    state: str
    connected: bool


class PublishRequest(BaseModel):
    kind: str = Field(..., description="Event kind, e.g. entity:created")
    payload: dict[str, Any] = Field(default_factory=dict)


class PublishResult(BaseModel):
    kind: str
    handlers: int
    emails: list[DispatchResult] = Field(default_factory=list)


class EventRecord(BaseModel):
    event_id: str
    kind: str
    occurred_at: datetime
    payload: dict[str, Any]


class NotificationFeed(BaseModel):
    unread_count: int
    notifications: list[Notification]


class EnabledRequest(BaseModel):
    enabled: bool


class TestEmailRequest(BaseModel):
    recipient: str


def get_session(request: Request) -> RealtimeSession:
    return request.app.state.session


def _connection_status(session: RealtimeSession) -> ConnectionStatus:
    return ConnectionStatus(state=session.bus.state.value, connected=session.bus.is_connected)


def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    transport: Optional[EmailTransport] = None,
) -> FastAPI:
    """
    Build the application. Each app owns one RealtimeSession.

    Args:
        settings: Overrides environment configuration
        clock: Clock for the session (tests pass a ManualClock)
        transport: Email transport override
    """

    # Application lifespan
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown."""
        logger.info("Starting cargo real-time API")
        app.state.session = RealtimeSession(settings=settings, clock=clock, transport=transport)
        yield
        session: RealtimeSession = app.state.session
        session.end()
        await session.drain()
        logger.info("Shutting down")

    app = FastAPI(
        title="Cargo Real-Time Pipeline",
        description="""
    Event distribution and aggregation for shipment tracking.

    ## Endpoints

    - `/session` - Start/end the user session and change email preferences
    - `/connection` - Inspect or toggle the real-time connection
    - `/events` - Publish events and view the recent event log
    - `/notifications` - Notification feed with read/unread state
    - `/metrics` - Live dashboard counters and recent activity
    - `/deliveries` - Email queue, statistics and test sends
    """,
        version="1.0.0",
        lifespan=lifespan,
    )

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "cargo-realtime"}

    # =========================================================================
    # Session
    # =========================================================================

    @app.post("/session", response_model=ConnectionStatus, tags=["Session"])
    def start_session(request: SessionRequest, session: RealtimeSession = Depends(get_session)):
        """
        Begin an authenticated session.

        Loads the user's email preferences and connects the bus.
        """
        session.start(request.model_dump())
        return _connection_status(session)

    @app.delete("/session", response_model=ConnectionStatus, tags=["Session"])
    def end_session(session: RealtimeSession = Depends(get_session)):
        """End the session. Notifications and metrics are kept."""
        session.end()
        return _connection_status(session)

    @app.patch("/session/preferences", tags=["Session"])
    def change_preferences(changes: dict[str, Any], session: RealtimeSession = Depends(get_session)):
        """
        Apply a partial preference update.

        ``email`` as a boolean toggles all email; as a string it replaces the
        address. Every other key is a category flag.
        """
        session.preferences_changed(changes)
        return {
            "enabled": session.dispatcher.enabled,
            "email": session.dispatcher.email,
            "categories": session.dispatcher.categories,
        }

    # =========================================================================
    # Connection
    # =========================================================================

    @app.get("/connection", response_model=ConnectionStatus, tags=["Connection"])
    def connection_status(session: RealtimeSession = Depends(get_session)):
        return _connection_status(session)

    @app.post("/connection/connect", response_model=ConnectionStatus, tags=["Connection"])
    def connect(session: RealtimeSession = Depends(get_session)):
        session.bus.connect()
        return _connection_status(session)

    @app.post("/connection/disconnect", response_model=ConnectionStatus, tags=["Connection"])
    def disconnect(session: RealtimeSession = Depends(get_session)):
        session.bus.disconnect()
        return _connection_status(session)

    # =========================================================================
    # Events
    # =========================================================================

    @app.post("/events", response_model=PublishResult, tags=["Events"])
    async def publish_event(
        request: PublishRequest,
        wait: bool = False,
        session: RealtimeSession = Depends(get_session),
    ):
        """
        Publish an event to every subscriber.

        Events published while disconnected are dropped (``handlers`` is 0).
        With ``wait=true`` the response waits for any emails the event
        triggered and includes their results.
        """
        handlers = session.bus.publish(request.kind, request.payload)
        emails = await session.drain() if wait else []
        return PublishResult(kind=request.kind, handlers=handlers, emails=emails)

    @app.get("/events/log", response_model=list[EventRecord], tags=["Events"])
    def event_log(session: RealtimeSession = Depends(get_session)):
        """Recently published events, oldest first."""
        return [
            EventRecord(
                event_id=e.event_id,
                kind=e.kind,
                occurred_at=e.occurred_at,
                payload=e.payload_dict(),
            )
            for e in session.bus.get_event_log()
        ]

    # =========================================================================
    # Notifications
    # =========================================================================

    @app.get("/notifications", response_model=NotificationFeed, tags=["Notifications"])
    def list_notifications(filter: str = "all", session: RealtimeSession = Depends(get_session)):
        """Notification feed, newest first. Filters: all, unread, shipments, system, user."""
        return NotificationFeed(
            unread_count=session.notifications.unread_count,
            notifications=session.notifications.query(filter),
        )

    @app.post("/notifications/{notification_id}/read", tags=["Notifications"])
    def mark_notification_read(notification_id: int, session: RealtimeSession = Depends(get_session)):
        if session.notifications.get(notification_id) is None:
            raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
        changed = session.notifications.mark_read(notification_id)
        return {"changed": changed, "unread_count": session.notifications.unread_count}

    @app.post("/notifications/read-all", tags=["Notifications"])
    def mark_all_notifications_read(session: RealtimeSession = Depends(get_session)):
        changed = session.notifications.mark_all_read()
        return {"changed": changed, "unread_count": session.notifications.unread_count}

    @app.delete("/notifications", tags=["Notifications"])
    def clear_notifications(session: RealtimeSession = Depends(get_session)):
        return {"removed": session.notifications.clear()}

    # =========================================================================
    # Live metrics
    # =========================================================================

    @app.get("/metrics", response_model=LiveMetrics, tags=["Metrics"])
    def live_metrics(session: RealtimeSession = Depends(get_session)):
        return session.metrics.snapshot()

    # =========================================================================
    # Email deliveries
    # =========================================================================

    @app.get("/deliveries", response_model=list[QueuedDelivery], tags=["Deliveries"])
    def list_deliveries(session: RealtimeSession = Depends(get_session)):
        """Sent emails, most recent first."""
        return session.dispatcher.queue()

    @app.get("/deliveries/stats", response_model=DeliveryStats, tags=["Deliveries"])
    def delivery_stats(session: RealtimeSession = Depends(get_session)):
        return session.dispatcher.stats()

    @app.put("/deliveries/enabled", tags=["Deliveries"])
    def set_deliveries_enabled(request: EnabledRequest, session: RealtimeSession = Depends(get_session)):
        session.dispatcher.set_enabled(request.enabled)
        return {"enabled": session.dispatcher.enabled}

    @app.post("/deliveries/test", response_model=DispatchResult, tags=["Deliveries"])
    async def send_test_email(request: TestEmailRequest, session: RealtimeSession = Depends(get_session)):
        """Send the shipment-created email with fixed test data."""
        return await session.dispatcher.send_test(request.recipient)

    return app


app = create_app()
