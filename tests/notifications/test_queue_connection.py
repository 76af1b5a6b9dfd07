"""Tests for the queue-backed connection used by the SSE streams."""

import pytest

from notifications.fanout import CloseReason, DeliveryError, QueueConnection, SubscriptionRegistry


class TestQueueConnection:
    def test_messages_come_out_in_order(self):
        connection = QueueConnection(user_id="user-001", maxsize=5)
        connection.deliver({"event_type": "a"})
        connection.deliver({"event_type": "b"})

        assert connection.pending() == 2
        assert connection.next_message(timeout=0)["event_type"] == "a"
        assert connection.next_message(timeout=0)["event_type"] == "b"
        assert connection.next_message(timeout=0) is None

    def test_full_outbox_is_a_delivery_failure(self):
        connection = QueueConnection(user_id="user-001", maxsize=1)
        connection.deliver({"event_type": "a"})
        with pytest.raises(DeliveryError):
            connection.deliver({"event_type": "b"})

    def test_closed_connection_refuses_delivery(self):
        connection = QueueConnection(user_id="user-001")
        assert connection.close(CloseReason.TIMEOUT) is True
        assert connection.close(CloseReason.SEND_ERROR) is False
        assert connection.close_reason == CloseReason.TIMEOUT
        with pytest.raises(DeliveryError):
            connection.deliver({"event_type": "a"})


class TestSlowSubscriber:
    def test_registry_drops_subscriber_that_stops_reading(self):
        registry = SubscriptionRegistry(queue_size=2)
        slow = registry.subscribe(user_id="user-001")
        fast = registry.subscribe(user_id="user-001")
        fast.next_message(timeout=0)

        assert registry.publish_to_user("user-001", "cart_update", {}) == 2
        fast.next_message(timeout=0)

        assert registry.publish_to_user("user-001", "cart_update", {}) == 1
        assert slow.close_reason == CloseReason.SEND_ERROR
        assert registry.connections_for("user-001") == [fast]
