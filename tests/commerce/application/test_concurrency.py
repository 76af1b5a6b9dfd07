"""Concurrent orders and cart edits against the same stock."""

import threading

import pytest
from protean.exceptions import ValidationError

from commerce.cart.service import cart_service
from commerce.domain import commerce
from commerce.order.service import order_service
from commerce.utils.locking import KeyedLocks, cart_locks, product_locks


def _run_in_threads(count, target):
    """Run ``target(index)`` in ``count`` threads, each in its own domain context."""
    results: list = [None] * count
    barrier = threading.Barrier(count)

    def worker(index):
        with commerce.domain_context():
            barrier.wait()
            try:
                results[index] = target(index)
            except ValidationError as exc:
                results[index] = exc

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


class TestConcurrentReservations:
    def test_last_units_are_sold_once(self, stocked):
        def buy(index):
            return order_service.place_order(
                user_id=f"user-{index:03d}",
                items=[{"product_id": "prod-003", "quantity": 1}],
                shipping_address_id="addr-001",
            )

        results = _run_in_threads(8, buy)

        placed = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, ValidationError)]
        assert len(placed) == 3
        assert len(rejected) == 5

        record = stocked.get("prod-003")
        assert record.quantity_available == 0
        assert record.quantity_reserved == 3

    def test_reservations_and_releases_balance(self, stocked):
        def churn(index):
            stocked.reserve("prod-001", 2)
            stocked.release("prod-001", 1)
            return index

        _run_in_threads(10, churn)

        record = stocked.get("prod-001")
        assert record.quantity_available == 40
        assert record.quantity_reserved == 10
        assert record.total_quantity == 50


class TestConcurrentCartEdits:
    def test_adds_to_one_cart_are_not_lost(self, stocked):
        _run_in_threads(6, lambda index: cart_service.add("prod-001", 1, user_id="user-001"))
        assert cart_service.get(user_id="user-001").quantity_of("prod-001") == 6


class TestKeyedLocks:
    def test_hold_is_reentrant_and_ordered(self):
        locks = KeyedLocks("test")
        with locks.hold("b", "a", "a", None):
            with locks.hold("a"):
                pass

    @pytest.mark.parametrize("keys", [[], [None]])
    def test_hold_nothing(self, keys):
        locks = KeyedLocks("test")
        with locks.hold_all(keys):
            pass

    def test_table_is_empty_after_release(self):
        locks = KeyedLocks("test")
        with locks.hold("a", "b"):
            with locks.hold("a"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_waiters_share_the_lock_of_the_holder(self):
        locks = KeyedLocks("test")
        entered = []
        holder_in = threading.Event()
        release_holder = threading.Event()

        def holder():
            with locks.hold("a"):
                holder_in.set()
                release_holder.wait(timeout=5)
                entered.append("holder")

        def waiter():
            holder_in.wait(timeout=5)
            with locks.hold("a"):
                entered.append("waiter")

        threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
        for thread in threads:
            thread.start()
        holder_in.wait(timeout=5)
        release_holder.set()
        for thread in threads:
            thread.join(timeout=5)

        assert entered == ["holder", "waiter"]
        assert len(locks) == 0

    def test_anonymous_carts_leave_no_lock_entries(self, stocked):
        for index in range(200):
            session_id = f"sess-{index:03d}"
            cart_service.add("prod-001", 1, session_id=session_id)
            cart_service.clear(session_id=session_id)

        assert len(cart_locks) == 0
        assert len(product_locks) == 0
