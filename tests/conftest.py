"""
Shared pytest fixtures for the cargo real-time pipeline tests.

Every fixture builds fresh instances, so tests never share bus
subscriptions, queues or counters. Time is a ManualClock and randomness is
seeded, so nothing depends on the wall clock.
"""

import random

import pytest

from common.clock import ManualClock
from common.config import Settings
from delivery.dispatcher import EmailDispatcher
from delivery.transport import SimulatedEmailTransport
from realtime.event_bus import EventBus
from realtime.session import RealtimeSession


@pytest.fixture
def clock() -> ManualClock:
    """Deterministic clock starting at 2024-01-01 09:00 UTC."""
    return ManualClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def settings() -> Settings:
    """Settings that ignore the environment's .env file and never fail sends."""
    return Settings(_env_file=None, send_failure_rate=0.0)


@pytest.fixture
def transport(clock: ManualClock) -> SimulatedEmailTransport:
    """Simulated transport that always succeeds."""
    return SimulatedEmailTransport(clock=clock, failure_rate=0.0)


# =============================================================================
# Identity Fixtures
# =============================================================================

@pytest.fixture
def identity() -> dict:
    """Session payload for a user with every email category enabled."""
    return {
        "email": "ops@cargo-demo.com",
        "notificationPreferences": {
            "email": True,
            "shipmentCreated": True,
            "shipmentDelivered": True,
            "shipmentDelayed": True,
            "systemAlerts": True,
        },
    }


@pytest.fixture
def dispatcher(clock: ManualClock, transport: SimulatedEmailTransport, identity: dict) -> EmailDispatcher:
    """Dispatcher initialized with the identity fixture's preferences."""
    dispatcher = EmailDispatcher(transport=transport, clock=clock)
    dispatcher.initialize(identity)
    return dispatcher


# =============================================================================
# Bus / Session Fixtures
# =============================================================================

@pytest.fixture
def bus(clock: ManualClock) -> EventBus:
    """Fresh, disconnected event bus."""
    return EventBus(clock=clock)


@pytest.fixture
def connected_bus(bus: EventBus) -> EventBus:
    bus.connect()
    return bus


@pytest.fixture
def session(settings: Settings, clock: ManualClock, transport: SimulatedEmailTransport) -> RealtimeSession:
    """Fully wired session, not yet started."""
    return RealtimeSession(settings=settings, clock=clock, transport=transport)
