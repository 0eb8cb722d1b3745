"""
Demonstration scripts for the real-time pipeline.

These functions show the pipeline in action. Run them to see events being
published, notifications appearing, the dashboard updating and emails
being sent.
"""

import asyncio
import logging
import random

from common.clock import ManualClock
from common.config import Settings
from realtime import events
from realtime.events import EventKind
from realtime.session import RealtimeSession
from realtime.simulator import EventSimulator

DEMO_USER = {
    "email": "dispatcher@cargo-demo.com",
    "notificationPreferences": {
        "email": True,
        "shipmentCreated": True,
        "shipmentDelivered": True,
        "shipmentDelayed": True,
        "systemAlerts": True,
    },
}


def _print_session(session: RealtimeSession) -> None:
    print("\nNotifications (newest first):")
    for n in session.notifications.query():
        marker = " " if n.read else "*"
        print(f"  {marker} {n.icon} [{n.priority}] {n.title}: {n.message}")
    print(f"  unread: {session.notifications.unread_count}")

    metrics = session.metrics.snapshot()
    print("\nLive metrics:")
    print(
        f"  total={metrics.total_count} active={metrics.active_count} "
        f"delivered_today={metrics.delivered_today_count} "
        f"pending={metrics.pending_count} delayed={metrics.delayed_count}"
    )
    for activity in metrics.recent_activity:
        print(f"  {activity.icon} {activity.message}")

    print("\nEmails sent:")
    for delivery in session.dispatcher.queue():
        print(f"  ✓ {delivery.to}: {delivery.subject}")
    stats = session.dispatcher.stats()
    print(f"  {stats.sent}/{stats.total} sent, success rate {stats.success_rate}%")


async def run_shipment_lifecycle_demo() -> RealtimeSession:
    """
    Walk one shipment through its lifecycle.

    This shows:
    1. A producer publishes entity:created / delayed / delivered
    2. The notification store, live metrics and email notifier each react
    3. A disconnect drops events; reconnecting resumes delivery
    """
    print("\n" + "=" * 70)
    print("REAL-TIME DEMO: Shipment lifecycle")
    print("=" * 70 + "\n")

    clock = ManualClock()
    session = RealtimeSession(settings=Settings(send_failure_rate=0.0), clock=clock)
    session.start(DEMO_USER)

    bus = session.bus
    bus.publish(EventKind.ENTITY_CREATED, events.shipment_created(
        "CST099", origin="New York, USA", destination="London, UK", cargo="Electronics",
    ))
    bus.publish(EventKind.ENTITY_DELAYED, events.shipment_delayed("CST099", reason="Port congestion"))
    bus.publish(EventKind.SYSTEM_ALERT, events.system_alert(
        "Weather alert: Storm approaching shipping route", priority="high",
    ))

    print("-" * 70)
    print("ACTION: Disconnecting, then publishing (should be dropped)")
    print("-" * 70)
    session.end()
    bus.publish(EventKind.ENTITY_DELIVERED, events.shipment_delivered("CST099"))

    session.start(DEMO_USER)
    bus.publish(EventKind.ENTITY_DELIVERED, events.shipment_delivered("CST099", recipient="John Smith"))

    await session.drain()
    _print_session(session)
    return session


async def run_simulation_demo(count: int = 20, seed: int = 42) -> RealtimeSession:
    """Publish a burst of random events with the default 5% email failure rate."""
    print("\n" + "=" * 70)
    print(f"REAL-TIME DEMO: {count} simulated events")
    print("=" * 70 + "\n")

    clock = ManualClock()
    session = RealtimeSession(settings=Settings(), clock=clock)
    session.start(DEMO_USER)

    simulator = EventSimulator(session.bus, rng=random.Random(seed))
    await simulator.run(count=count, interval=3.0)
    await session.drain()

    _print_session(session)
    return session


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )
    asyncio.run(run_shipment_lifecycle_demo())
    asyncio.run(run_simulation_demo())
