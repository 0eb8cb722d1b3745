"""
Tests for the live metrics aggregator.
"""

import logging

import pytest

from common.clock import ManualClock
from realtime import events
from realtime.event_bus import EventBus
from realtime.events import EventKind
from realtime.live_metrics import LiveMetricsAggregator


@pytest.fixture
def metrics(connected_bus: EventBus, clock: ManualClock) -> LiveMetricsAggregator:
    metrics = LiveMetricsAggregator(clock=clock)
    metrics.attach(connected_bus)
    return metrics


class TestDeltas:
    """Each event kind applies its fixed delta."""

    def test_starts_at_zero(self, metrics: LiveMetricsAggregator):
        snapshot = metrics.snapshot()
        assert snapshot.total_count == 0
        assert snapshot.active_count == 0
        assert snapshot.last_update is None
        assert snapshot.recent_activity == []

    def test_created(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "CST099"})

        snapshot = metrics.snapshot()
        assert snapshot.total_count == 1
        assert snapshot.active_count == 1

    def test_created_then_delivered(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        """Net effect: active unchanged, delivered today +1."""
        before = metrics.snapshot()

        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "CST099"})
        connected_bus.publish(EventKind.ENTITY_DELIVERED, {"trackingNumber": "CST099"})

        after = metrics.snapshot()
        assert after.active_count == before.active_count
        assert after.delivered_today_count == before.delivered_today_count + 1
        assert after.total_count == 1

    def test_active_never_negative(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_DELIVERED, {"trackingNumber": "X"})
        connected_bus.publish(EventKind.ENTITY_CANCELLED, {"trackingNumber": "Y"})

        snapshot = metrics.snapshot()
        assert snapshot.active_count == 0
        assert snapshot.delivered_today_count == 1

    def test_delayed(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_DELAYED, events.shipment_delayed("CST1", "Weather"))
        assert metrics.snapshot().delayed_count == 1

    def test_cancelled(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.ENTITY_CANCELLED, events.shipment_cancelled("A"))

        snapshot = metrics.snapshot()
        assert snapshot.active_count == 0
        assert snapshot.total_count == 1

    def test_unrelated_kinds_are_ignored(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_UPDATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.SYSTEM_ALERT, {"message": "hi"})

        snapshot = metrics.snapshot()
        assert snapshot.last_update is None
        assert snapshot.recent_activity == []

    def test_disconnected_bus_changes_nothing(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.disconnect()
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})

        assert metrics.snapshot().total_count == 0


class TestStatsUpdate:
    """stats:update resynchronizes the counters from the backend."""

    def test_replaces_counters(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.STATS_UPDATE, events.stats_update(120, 45, 8, 12, 3))

        snapshot = metrics.snapshot()
        assert snapshot.total_count == 120
        assert snapshot.active_count == 45
        assert snapshot.delivered_today_count == 8
        assert snapshot.pending_count == 12
        assert snapshot.delayed_count == 3

    def test_partial_update(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.STATS_UPDATE, {"pending_count": 4})

        snapshot = metrics.snapshot()
        assert snapshot.total_count == 1
        assert snapshot.pending_count == 4

    def test_bad_values(self, metrics: LiveMetricsAggregator, connected_bus: EventBus, caplog):
        with caplog.at_level(logging.WARNING, logger="live_metrics"):
            connected_bus.publish(EventKind.STATS_UPDATE, {"totalShipments": "lots", "activeShipments": -5})

        snapshot = metrics.snapshot()
        assert snapshot.total_count == 0
        assert snapshot.active_count == 0
        assert "totalShipments" in caplog.text

    def test_adds_activity(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.STATS_UPDATE, events.stats_update(1, 1, 0, 0, 0))
        assert metrics.snapshot().recent_activity[0].message == "Dashboard statistics synchronized"


class TestActivity:
    """Tests for the recent activity list."""

    def test_activity_entry(self, metrics: LiveMetricsAggregator, connected_bus: EventBus, clock: ManualClock):
        connected_bus.publish(EventKind.ENTITY_DELIVERED, {"trackingNumber": "CST099"})

        [entry] = metrics.snapshot().recent_activity
        assert entry.kind == "entity:delivered"
        assert entry.icon == "✅"
        assert entry.message == "Shipment CST099 delivered"
        assert entry.timestamp == clock.now()
        assert metrics.snapshot().last_update == clock.now()

    def test_capped_at_10_newest_first(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        for i in range(15):
            connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": f"CST{i}"})

        activity = metrics.snapshot().recent_activity
        assert len(activity) == 10
        assert activity[0].message == "New shipment CST14 created"
        assert activity[-1].message == "New shipment CST5 created"

    def test_snapshot_is_a_copy(self, metrics: LiveMetricsAggregator, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})

        snapshot = metrics.snapshot()
        snapshot.recent_activity.clear()
        snapshot.total_count = 99

        assert metrics.snapshot().total_count == 1
        assert len(metrics.snapshot().recent_activity) == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            LiveMetricsAggregator(activity_capacity=0)


class TestDayRollover:
    def test_delivered_today_resets_on_new_day(
        self, metrics: LiveMetricsAggregator, connected_bus: EventBus, clock: ManualClock
    ):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "B"})
        connected_bus.publish(EventKind.ENTITY_DELIVERED, {"trackingNumber": "A"})

        clock.advance(hours=24)
        connected_bus.publish(EventKind.ENTITY_DELIVERED, {"trackingNumber": "B"})

        snapshot = metrics.snapshot()
        assert snapshot.delivered_today_count == 1
        assert snapshot.active_count == 0
        assert snapshot.total_count == 2
