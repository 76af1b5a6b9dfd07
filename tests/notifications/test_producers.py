"""Tests for the notification producers."""

import pytest

from notifications.producers import (
    notify_cart_update,
    notify_inventory_change,
    notify_low_stock,
    notify_new_order,
    notify_order_status_change,
    order_status_message,
    send_test_notification,
)


@pytest.fixture()
def alice(registry):
    return registry.subscribe(user_id="user-001")


@pytest.fixture()
def admin(registry):
    return registry.subscribe(admin=True)


class TestStatusMessages:
    @pytest.mark.parametrize(
        "status, fragment",
        [
            ("Confirmed", "has been confirmed"),
            ("shipped", "has been shipped"),
            ("Delivered", "has been delivered"),
            ("Refunded", "3-5 business days"),
        ],
    )
    def test_known_statuses(self, status, fragment):
        assert fragment in order_status_message(status, "ORD-1")

    def test_unknown_status_falls_back(self):
        assert order_status_message("Lost", "ORD-1") == "Your order ORD-1 status has been updated to: Lost"


class TestOrderNotifications:
    def test_status_change_goes_to_customer(self, alice, admin):
        notify_order_status_change("user-001", "ORD-1", "Pending", "Confirmed")

        assert alice.received[-1]["payload"]["status"] == "Confirmed"
        assert admin.event_types() == ["connection"]

    @pytest.mark.parametrize("status", ["Shipped", "Cancelled", "Refunded"])
    def test_admins_see_terminal_moves(self, alice, admin, status):
        notify_order_status_change("user-001", "ORD-1", "Processing", status)
        assert admin.received[-1]["event_type"] == "order_status_change"
        assert admin.received[-1]["payload"]["new_status"] == status

    def test_new_order(self, alice, admin):
        notify_new_order("user-001", "ORD-1", 49.39)

        assert alice.received[-1]["event_type"] == "order_status_update"
        assert admin.received[-1]["event_type"] == "new_order"
        assert admin.received[-1]["payload"]["message"] == "New order received: ORD-1"


class TestInventoryNotifications:
    def test_change_goes_to_admins(self, alice, admin):
        notify_inventory_change("prod-001", "Black T-Shirt", 50, 45)
        assert admin.event_types()[-1] == "inventory_change"
        assert alice.event_types() == ["connection"]

    @pytest.mark.parametrize("old, new, broadcast", [(6, 5, True), (7, 6, False), (3, 4, False)])
    def test_low_inventory_broadcast(self, alice, admin, old, new, broadcast):
        notify_inventory_change("prod-001", "Black T-Shirt", old, new)
        assert ("low_inventory" in alice.event_types()) is broadcast

    def test_low_stock_alert(self, admin):
        notify_low_stock("prod-001", "Black T-Shirt", 3, 10)
        payload = admin.received[-1]["payload"]
        assert payload["priority"] == "high"
        assert payload["message"] == "Low stock alert: Black T-Shirt has only 3 units left"


class TestOtherNotifications:
    def test_cart_update(self, alice):
        notify_cart_update("user-001", {"total_items": 2}, "AddCartItem")
        assert alice.received[-1]["payload"] == {"action": "AddCartItem", "cart": {"total_items": 2}}

    def test_test_notification_counts_users(self, alice, admin, registry):
        registry.subscribe(user_id="user-002")
        assert send_test_notification("ping") == 2

    def test_registry_failure_is_contained(self, registry, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("registry down")

        monkeypatch.setattr(registry, "publish", explode)
        notify_order_status_change("user-001", "ORD-1", "Pending", "Cancelled")
        assert send_test_notification("ping") == 0
