"""Shared BDD fixtures and step definitions for order fulfilment."""

import pytest
from pytest_bdd import given, parsers, then

from commerce.inventory.ledger import inventory_ledger
from commerce.order.order import ActorRole
from commerce.order.service import order_service


def _statuses(text):
    return [status.strip() for status in text.split(",") if status.strip()]


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def placed():
    """The outcome of the last successful order placement."""
    return {}


@pytest.fixture()
def error():
    """Container for capturing the exception raised by a When step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('product "{product_id}" has {quantity:d} units in stock with reorder level {level:d}'))
def product_in_stock(catalogue, product_id, quantity, level):
    inventory_ledger.initialize(product_id, initial_quantity=quantity, reorder_level=level)


@given(parsers.cfparse('customer "{user_id}" ordered {quantity:d} units of "{product_id}"'))
def customer_ordered(placed, user_id, quantity, product_id):
    placed.update(
        order_service.place_order(
            user_id=user_id,
            items=[{"product_id": product_id, "quantity": quantity}],
            shipping_address_id="addr-001",
        )
    )


@given(parsers.cfparse('an admin moved the order through "{statuses}"'))
def admin_moved_order(placed, statuses):
    for status in _statuses(statuses):
        order_service.update_status(placed["order_id"], status, actor_role=ActorRole.ADMIN, changed_by="admin-001")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{product_id}" has {available:d} units available and {reserved:d} reserved'))
def ledger_levels(product_id, available, reserved):
    record = inventory_ledger.get(product_id)
    assert record.quantity_available == available
    assert record.quantity_reserved == reserved


@then(parsers.cfparse('the order is "{status}"'))
def order_status_is(placed, status):
    assert order_service.get(placed["order_id"]).status == status
