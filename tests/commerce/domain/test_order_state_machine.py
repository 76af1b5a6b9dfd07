"""Tests for the Order aggregate: placement, transitions, permissions and history."""

import pytest
from protean.exceptions import ValidationError

from commerce.exceptions import InvalidStatusTransition, PermissionDenied
from commerce.order.events import OrderPlaced, OrderStatusChanged, PaymentStatusChanged
from commerce.order.order import (
    ActorRole,
    Order,
    OrderStatus,
    PaymentStatus,
    ReservationState,
    allowed_transitions,
)


def _make_order(**overrides):
    defaults = {
        "order_number": "ORD-20260101120000-001",
        "user_id": "user-001",
        "lines": [
            {
                "product_id": "prod-001",
                "product_sku": "TSHIRT-BLK-M",
                "product_name": "Black T-Shirt",
                "unit_price": 20.0,
                "quantity": 2,
            },
            {
                "product_id": "prod-002",
                "product_sku": "MUG-WHT",
                "product_name": "White Mug",
                "unit_price": 12.5,
                "quantity": 1,
            },
        ],
        "subtotal": 52.5,
        "tax_amount": 4.46,
        "shipping_amount": 0.0,
        "shipping_address_id": "addr-001",
    }
    defaults.update(overrides)
    return Order.place(**defaults)


def _walk(order, *statuses):
    for status in statuses:
        order.transition_to(status, changed_by="admin-001")
    return order


class TestPlace:
    def test_order_starts_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_totals(self):
        order = _make_order()
        assert order.total_amount == pytest.approx(56.96)
        assert order.items[0].total_price + order.items[1].total_price == pytest.approx(52.5)

    def test_billing_defaults_to_shipping(self):
        order = _make_order()
        assert str(order.billing_address_id) == "addr-001"

    def test_explicit_billing_address(self):
        order = _make_order(billing_address_id="addr-002")
        assert str(order.billing_address_id) == "addr-002"

    def test_items_start_reserved(self):
        order = _make_order()
        assert all(item.reservation_status == ReservationState.RESERVED.value for item in order.items)
        assert len(order.held_items()) == 2

    def test_creation_history_entry(self):
        order = _make_order()
        history = order.sorted_history()
        assert len(history) == 1
        assert history[0].previous_status is None
        assert history[0].new_status == OrderStatus.PENDING.value
        assert history[0].notes == "Order created"

    def test_raises_order_placed(self):
        order = _make_order()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 3
        assert event.order_number == "ORD-20260101120000-001"

    def test_empty_order_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _make_order(lines=[])
        assert "items" in exc_info.value.messages


class TestStatusParsing:
    @pytest.mark.parametrize("text", ["Shipped", "shipped", "SHIPPED", " shipped "])
    def test_accepts_value_or_name(self, text):
        assert OrderStatus.parse(text) == OrderStatus.SHIPPED

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            OrderStatus.parse("Lost")


class TestTransitionTable:
    @pytest.mark.parametrize(
        "path",
        [
            ["Confirmed", "Processing", "Shipped", "Delivered", "Refunded"],
            ["Cancelled", "Refunded"],
            ["Confirmed", "Processing", "Shipped", "Cancelled"],
        ],
    )
    def test_valid_paths(self, path):
        order = _walk(_make_order(), *path)
        assert order.status == path[-1]

    @pytest.mark.parametrize(
        "path, target",
        [
            ([], "Shipped"),
            ([], "Delivered"),
            (["Confirmed"], "Pending"),
            (["Confirmed", "Processing", "Shipped", "Delivered"], "Cancelled"),
            (["Cancelled", "Refunded"], "Pending"),
            (["Cancelled"], "Confirmed"),
        ],
    )
    def test_invalid_transitions_leave_status_unchanged(self, path, target):
        order = _walk(_make_order(), *path)
        before = order.status
        history_length = len(order.history)

        with pytest.raises(InvalidStatusTransition) as exc_info:
            order.transition_to(target)

        assert order.status == before
        assert len(order.history) == history_length
        assert exc_info.value.current == before
        assert "status" in exc_info.value.messages

    def test_refunded_is_terminal(self):
        assert allowed_transitions(OrderStatus.REFUNDED) == set()

    def test_customer_table_is_cancel_only(self):
        assert allowed_transitions(OrderStatus.PENDING, ActorRole.CUSTOMER) == {OrderStatus.CANCELLED}
        assert allowed_transitions(OrderStatus.PROCESSING, ActorRole.CUSTOMER) == set()


class TestPermissions:
    def test_customer_can_cancel_own_pending_order(self):
        order = _make_order()
        target = order.check_transition("Cancelled", ActorRole.CUSTOMER, actor_id="user-001")
        assert target == OrderStatus.CANCELLED

    def test_customer_can_cancel_own_confirmed_order(self):
        order = _walk(_make_order(), "Confirmed")
        order.check_transition("Cancelled", ActorRole.CUSTOMER, actor_id="user-001")

    def test_customer_cannot_cancel_processing_order(self):
        order = _walk(_make_order(), "Confirmed", "Processing")
        with pytest.raises(PermissionDenied):
            order.check_transition("Cancelled", ActorRole.CUSTOMER, actor_id="user-001")

    def test_customer_cannot_confirm(self):
        order = _make_order()
        with pytest.raises(PermissionDenied):
            order.check_transition("Confirmed", ActorRole.CUSTOMER, actor_id="user-001")

    def test_customer_cannot_touch_another_users_order(self):
        order = _make_order()
        with pytest.raises(PermissionDenied):
            order.check_transition("Cancelled", ActorRole.CUSTOMER, actor_id="user-002")

    def test_admin_can_cancel_shipped_order(self):
        order = _walk(_make_order(), "Confirmed", "Processing", "Shipped")
        assert order.check_transition("Cancelled", ActorRole.ADMIN) == OrderStatus.CANCELLED

    def test_shipped_order_cancellable_by_admin_only(self):
        order = _walk(_make_order(), "Confirmed", "Processing", "Shipped")
        with pytest.raises(PermissionDenied):
            order.check_transition("Cancelled", ActorRole.CUSTOMER, actor_id="user-001")
        assert order.status == OrderStatus.SHIPPED.value
        order.check_transition("Cancelled", ActorRole.ADMIN)

    def test_invalid_edge_wins_over_permission(self):
        order = _make_order()
        with pytest.raises(InvalidStatusTransition):
            order.check_transition("Delivered", ActorRole.CUSTOMER, actor_id="user-002")

    def test_role_may_be_given_as_value(self):
        order = _make_order()
        with pytest.raises(PermissionDenied):
            order.check_transition("Confirmed", "Customer", actor_id="user-001")


class TestItemReservations:
    def test_cancel_releases_held_items(self):
        order = _walk(_make_order(), "Cancelled")
        assert all(item.reservation_status == ReservationState.RELEASED.value for item in order.items)
        assert order.held_items() == []

    def test_ship_confirms_held_items(self):
        order = _walk(_make_order(), "Confirmed", "Processing", "Shipped")
        assert all(item.reservation_status == ReservationState.CONFIRMED.value for item in order.items)

    def test_cancel_after_ship_leaves_items_confirmed(self):
        order = _walk(_make_order(), "Confirmed", "Processing", "Shipped", "Cancelled")
        assert all(item.reservation_status == ReservationState.CONFIRMED.value for item in order.items)


class TestPayment:
    def test_record_payment(self):
        order = _make_order()
        order.record_payment()
        assert order.payment_status == PaymentStatus.PAID.value
        assert isinstance(order._events[-1], PaymentStatusChanged)

    def test_payment_cannot_be_recorded_twice(self):
        order = _make_order()
        order.record_payment()
        with pytest.raises(ValidationError) as exc_info:
            order.record_payment()
        assert "payment_status" in exc_info.value.messages

    def test_payment_rejected_for_cancelled_order(self):
        order = _walk(_make_order(), "Cancelled")
        with pytest.raises(ValidationError):
            order.record_payment()

    def test_cancel_with_refund_refunds_paid_order(self):
        order = _make_order()
        order.record_payment()
        order.transition_to("Cancelled", refund_payment=True)
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refund_requested is True

    def test_cancel_without_refund_keeps_payment(self):
        order = _make_order()
        order.record_payment()
        order.transition_to("Cancelled")
        assert order.payment_status == PaymentStatus.PAID.value

    def test_refund_on_unpaid_order_only_flags_request(self):
        order = _make_order()
        order.transition_to("Cancelled", refund_payment=True)
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.refund_requested is True

    def test_refunded_status_refunds_payment(self):
        order = _make_order()
        order.record_payment()
        _walk(order, "Confirmed", "Processing", "Shipped", "Delivered")
        assert order.can_be_refunded
        order.transition_to("Refunded")
        assert order.payment_status == PaymentStatus.REFUNDED.value


class TestHistory:
    def test_every_transition_appends_entry(self):
        order = _walk(_make_order(), "Confirmed", "Processing")
        history = order.sorted_history()
        assert [entry.new_status for entry in history] == ["Pending", "Confirmed", "Processing"]
        assert [entry.previous_status for entry in history] == [None, "Pending", "Confirmed"]
        assert [entry.sequence for entry in history] == [0, 1, 2]

    def test_entry_records_actor_and_notes(self):
        order = _make_order()
        order.transition_to("Confirmed", changed_by="admin-007", notes="Payment verified")
        entry = order.sorted_history()[-1]
        assert str(entry.changed_by) == "admin-007"
        assert entry.notes == "Payment verified"

    def test_status_changed_event(self):
        order = _make_order()
        order._events.clear()
        order.transition_to("Confirmed", changed_by="admin-007")
        event = order._events[-1]
        assert isinstance(event, OrderStatusChanged)
        assert event.previous_status == "Pending"
        assert event.new_status == "Confirmed"

    def test_can_be_cancelled(self):
        order = _make_order()
        assert order.can_be_cancelled
        _walk(order, "Confirmed", "Processing")
        assert not order.can_be_cancelled
