"""
Tests for the notification store.

The unread counter must equal the number of unread entries after every
mutation, and the feed never holds more than its capacity.
"""

import pytest

from common.clock import ManualClock
from realtime import events
from realtime.event_bus import EventBus
from realtime.events import EventKind
from realtime.notification_store import NotificationStore


def assert_unread_invariant(store: NotificationStore) -> None:
    assert store.unread_count == sum(1 for n in store.query() if not n.read)


@pytest.fixture
def store(connected_bus: EventBus) -> NotificationStore:
    store = NotificationStore()
    store.attach(connected_bus)
    return store


class TestNotificationCreation:
    """Tests for turning events into notifications."""

    def test_shipment_created(self, store: NotificationStore, connected_bus: EventBus, clock: ManualClock):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "CST099"})

        [notification] = store.query()
        assert notification.kind == "entity:created"
        assert notification.title == "New Shipment Created"
        assert notification.message == "Shipment CST099 has been created"
        assert notification.icon == "📦"
        assert notification.priority == "medium"
        assert notification.read is False
        assert notification.timestamp == clock.now()
        assert notification.data == {"trackingNumber": "CST099"}

    def test_timestamp_is_when_the_bus_accepted_the_event(
        self, store: NotificationStore, connected_bus: EventBus, clock: ManualClock
    ):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        first_published = clock.now()
        clock.advance(90)
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "B"})

        newest, oldest = store.query()
        assert oldest.timestamp == first_published
        assert newest.timestamp == clock.now()
        assert store.get(oldest.id).timestamp == connected_bus.get_event_log()[0].occurred_at

    def test_nested_data_is_a_private_copy(self, store: NotificationStore, connected_bus: EventBus):
        payload = {"trackingNumber": "CST099", "shipment": {"origin": "Shanghai"}, "stops": ["Singapore"]}
        connected_bus.publish(EventKind.ENTITY_CREATED, payload)
        payload["shipment"]["origin"] = "changed"
        payload["stops"].append("Rotterdam")

        [notification] = store.query()
        assert notification.data == {
            "trackingNumber": "CST099",
            "shipment": {"origin": "Shanghai"},
            "stops": ["Singapore"],
        }
        # Plain containers, so the model can be copied and serialized
        assert isinstance(notification.data["shipment"], dict)

    def test_update_is_low_priority(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_UPDATED, events.shipment_updated("CST1", "In Transit"))

        [notification] = store.query()
        assert notification.message == "Shipment CST1 status changed to In Transit"
        assert notification.priority == "low"

    def test_delayed_is_high_priority(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_DELAYED, events.shipment_delayed("CST1", "Port congestion"))

        [notification] = store.query()
        assert notification.message == "Shipment CST1 delayed: Port congestion"
        assert notification.priority == "high"

    def test_system_alert_takes_priority_from_payload(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.SYSTEM_ALERT, events.system_alert("Storm", priority="high"))
        connected_bus.publish(EventKind.SYSTEM_ALERT, {"message": "Odd", "priority": "urgent"})

        odd, storm = store.query()
        assert storm.priority == "high"
        assert storm.message == "Storm"
        assert odd.priority == "medium"

    def test_missing_field_renders_path(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {})
        assert store.query()[0].message == "Shipment trackingNumber has been created"

    def test_kinds_without_rule_are_ignored(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.STATS_UPDATE, events.stats_update(1, 1, 0, 0, 0))
        connected_bus.publish("custom:thing", {})
        assert len(store) == 0

    def test_newest_first(self, store: NotificationStore, connected_bus: EventBus):
        for n in ("A", "B", "C"):
            connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": n})

        assert [n.data["trackingNumber"] for n in store.query()] == ["C", "B", "A"]

    def test_disconnected_bus_adds_nothing(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.disconnect()
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "CST099"})

        assert len(store) == 0
        assert store.unread_count == 0

    def test_detach(self, store: NotificationStore, connected_bus: EventBus):
        store.detach(connected_bus)
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "CST099"})
        assert len(store) == 0


class TestCapacity:
    """Tests for the bounded feed."""

    def test_capped_at_50(self, store: NotificationStore, connected_bus: EventBus):
        for i in range(60):
            connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": f"CST{i}"})

        feed = store.query()
        assert len(feed) == 50
        assert feed[0].data["trackingNumber"] == "CST59"
        assert feed[-1].data["trackingNumber"] == "CST10"
        assert_unread_invariant(store)

    def test_evicting_unread_entry_lowers_counter(self, connected_bus: EventBus):
        store = NotificationStore(capacity=2)
        store.attach(connected_bus)

        for n in ("A", "B", "C"):
            connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": n})

        assert store.unread_count == 2
        assert_unread_invariant(store)

    def test_evicting_read_entry_keeps_counter(self, connected_bus: EventBus):
        store = NotificationStore(capacity=2)
        store.attach(connected_bus)

        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        store.mark_all_read()
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "B"})
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "C"})

        assert store.unread_count == 2
        assert_unread_invariant(store)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            NotificationStore(capacity=0)


class TestReadState:
    """Tests for mark_read / mark_all_read / clear."""

    def test_mark_read(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "B"})
        target = store.query()[1]

        assert store.mark_read(target.id) is True
        assert store.get(target.id).read is True
        assert store.unread_count == 1
        assert_unread_invariant(store)

    def test_mark_read_is_idempotent(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        notification_id = store.query()[0].id

        assert store.mark_read(notification_id) is True
        assert store.mark_read(notification_id) is False
        assert store.unread_count == 0
        assert_unread_invariant(store)

    def test_mark_read_unknown_id(self, store: NotificationStore):
        assert store.mark_read(999) is False
        assert store.unread_count == 0

    def test_mark_all_read(self, store: NotificationStore, connected_bus: EventBus):
        for n in ("A", "B", "C"):
            connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": n})
        store.mark_read(store.query()[0].id)

        assert store.mark_all_read() == 2
        assert store.unread_count == 0
        assert_unread_invariant(store)

    def test_clear(self, store: NotificationStore, connected_bus: EventBus):
        for n in ("A", "B"):
            connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": n})

        assert store.clear() == 2
        assert len(store) == 0
        assert store.unread_count == 0

    def test_query_returns_copies(self, store: NotificationStore, connected_bus: EventBus):
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})

        copy = store.query()[0]
        copy.read = True

        assert store.unread_count == 1
        assert store.query()[0].read is False


class TestFilters:
    """Tests for query filters."""

    @pytest.fixture
    def populated(self, store: NotificationStore, connected_bus: EventBus) -> NotificationStore:
        connected_bus.publish(EventKind.ENTITY_CREATED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.ENTITY_DELIVERED, {"trackingNumber": "A"})
        connected_bus.publish(EventKind.SYSTEM_ALERT, {"message": "Maintenance"})
        connected_bus.publish(EventKind.USER_MENTION, events.user_mention("Ping", mentioned_by="kim"))
        store.mark_read(store.query()[-1].id)
        return store

    def test_all(self, populated: NotificationStore):
        assert len(populated.query("all")) == 4

    def test_unread(self, populated: NotificationStore):
        unread = populated.query("unread")
        assert len(unread) == 3
        assert all(not n.read for n in unread)

    def test_shipments(self, populated: NotificationStore):
        kinds = [n.kind for n in populated.query("shipments")]
        assert kinds == ["entity:delivered", "entity:created"]

    def test_system(self, populated: NotificationStore):
        assert [n.message for n in populated.query("system")] == ["Maintenance"]

    def test_exact_kind(self, populated: NotificationStore):
        assert [n.kind for n in populated.query("user:mention")] == ["user:mention"]
