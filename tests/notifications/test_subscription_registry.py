"""Tests for the subscription registry: subscribe, publish, pruning and stats."""

import pytest

from notifications.fanout import ADMIN, ALL_USERS, CloseReason, ConnectionState


class TestSubscribe:
    def test_user_subscription_is_acknowledged(self, registry):
        connection = registry.subscribe(user_id="user-001")
        assert connection.received == [
            {
                "event_type": "connection",
                "payload": "Connected to notifications",
                "timestamp": "2026-01-01T00:00:00+00:00",
            }
        ]

    def test_admin_subscription_is_acknowledged(self, registry):
        connection = registry.subscribe(admin=True)
        assert connection.received[0]["payload"] == "Connected to admin notifications"
        assert connection.user_id is None

    def test_identity_required(self, registry):
        with pytest.raises(ValueError):
            registry.subscribe()

    def test_one_user_many_connections(self, registry):
        registry.subscribe(user_id="user-001")
        registry.subscribe(user_id="user-001")
        registry.subscribe(user_id="user-002")
        registry.subscribe(admin=True)

        assert registry.stats() == {
            "connected_users": 2,
            "total_user_connections": 3,
            "admin_connections": 1,
        }
        assert len(registry.connections_for("user-001")) == 2

    def test_failed_acknowledgement_drops_connection(self, registry, clock):
        from notifications.fanout.fake_connection import FakeConnection

        def failing_connection(user_id=None, admin=False):
            connection = FakeConnection(user_id=user_id, admin=admin, clock=clock)
            connection.configure(should_succeed=False)
            return connection

        registry._connection_factory = failing_connection
        connection = registry.subscribe(user_id="user-001")

        assert connection.close_reason == CloseReason.SEND_ERROR
        assert registry.stats()["total_user_connections"] == 0


class TestPublish:
    def test_targets_only_the_user(self, registry):
        alice = registry.subscribe(user_id="user-001")
        bob = registry.subscribe(user_id="user-002")
        admin = registry.subscribe(admin=True)

        delivered = registry.publish("user-001", "order_status_update", {"status": "Shipped"})

        assert delivered == 1
        assert alice.event_types() == ["connection", "order_status_update"]
        assert bob.event_types() == ["connection"]
        assert admin.event_types() == ["connection"]

    def test_every_tab_of_a_user_receives(self, registry):
        tabs = [registry.subscribe(user_id="user-001") for _ in range(3)]
        assert registry.publish_to_user("user-001", "cart_update", {}) == 3
        assert all(tab.event_types()[-1] == "cart_update" for tab in tabs)

    def test_broadcast_reaches_users_not_admins(self, registry):
        alice = registry.subscribe(user_id="user-001")
        bob = registry.subscribe(user_id="user-002")
        admin = registry.subscribe(admin=True)

        assert registry.publish(ALL_USERS, "low_inventory", {}) == 2
        assert alice.event_types()[-1] == "low_inventory"
        assert bob.event_types()[-1] == "low_inventory"
        assert admin.event_types() == ["connection"]

    def test_admin_target(self, registry):
        alice = registry.subscribe(user_id="user-001")
        admin = registry.subscribe(admin=True)

        assert registry.publish(ADMIN, "new_order", {"order_number": "ORD-1"}) == 1
        assert admin.received[-1]["payload"] == {"order_number": "ORD-1"}
        assert alice.event_types() == ["connection"]

    def test_nobody_listening(self, registry):
        assert registry.publish_to_user("user-404", "cart_update", {}) == 0

    def test_message_shape(self, registry):
        alice = registry.subscribe(user_id="user-001")
        registry.publish_to_user("user-001", "cart_update", {"action": "AddCartItem"})
        assert alice.received[-1] == {
            "event_type": "cart_update",
            "payload": {"action": "AddCartItem"},
            "timestamp": "2026-01-01T00:00:00+00:00",
        }


class TestPruning:
    def test_failing_connection_is_dropped_others_still_receive(self, registry):
        broken = registry.subscribe(user_id="user-001")
        healthy = registry.subscribe(user_id="user-001")
        broken.configure(should_succeed=False)

        assert registry.publish_to_user("user-001", "cart_update", {}) == 1
        assert broken.state == ConnectionState.CLOSED
        assert broken.close_reason == CloseReason.SEND_ERROR
        assert registry.connections_for("user-001") == [healthy]

        broken.configure(should_succeed=True)
        registry.publish_to_user("user-001", "cart_update", {})
        assert broken.event_types() == ["connection"]

    def test_idle_connection_is_timed_out_on_publish(self, registry, clock):
        stale = registry.subscribe(user_id="user-001")
        clock.advance(61)
        fresh = registry.subscribe(user_id="user-001")

        assert registry.publish_to_user("user-001", "cart_update", {}) == 1
        assert stale.close_reason == CloseReason.TIMEOUT
        assert fresh.event_types()[-1] == "cart_update"

    def test_delivery_keeps_connection_alive(self, registry, clock):
        connection = registry.subscribe(user_id="user-001")
        clock.advance(40)
        registry.publish_to_user("user-001", "cart_update", {})
        clock.advance(40)

        assert registry.publish_to_user("user-001", "cart_update", {}) == 1
        assert connection.is_open

    def test_sweep_idle(self, registry, clock):
        registry.subscribe(user_id="user-001")
        registry.subscribe(admin=True)
        clock.advance(61)
        registry.subscribe(user_id="user-002")

        assert registry.sweep_idle() == 2
        assert registry.stats() == {
            "connected_users": 1,
            "total_user_connections": 1,
            "admin_connections": 0,
        }

    def test_expire_if_idle(self, registry, clock):
        connection = registry.subscribe(user_id="user-001")
        clock.advance(60)
        assert registry.expire_if_idle(connection) is False
        assert connection.is_open

        clock.advance(1)
        assert registry.expire_if_idle(connection) is True
        assert connection.close_reason == CloseReason.TIMEOUT
        assert registry.connections_for("user-001") == []

    def test_empty_bucket_is_removed(self, registry):
        connection = registry.subscribe(user_id="user-001")
        registry.unsubscribe(connection)
        assert registry.stats()["connected_users"] == 0
        assert connection.close_reason == CloseReason.CLIENT_DISCONNECT

    def test_unsubscribe_twice(self, registry):
        connection = registry.subscribe(user_id="user-001")
        registry.unsubscribe(connection)
        registry.unsubscribe(connection, CloseReason.TIMEOUT)
        assert connection.close_reason == CloseReason.CLIENT_DISCONNECT

    def test_closed_connection_is_pruned_on_publish(self, registry):
        connection = registry.subscribe(user_id="user-001")
        connection.close(CloseReason.CLIENT_DISCONNECT)

        assert registry.publish_to_user("user-001", "cart_update", {}) == 0
        assert registry.connections_for("user-001") == []

    def test_close_all(self, registry):
        connections = [registry.subscribe(user_id="user-001"), registry.subscribe(admin=True)]
        registry.close_all()
        assert not any(connection.is_open for connection in connections)
        assert registry.stats()["admin_connections"] == 0
