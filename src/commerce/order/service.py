"""OrderService — order placement, status changes and order queries.

Lock order is always: cart owner or order id first, then the products
involved in sorted order. Inventory-only operations take product locks
alone, so no path can wait on a lock held by a path waiting on it.
"""

import json
from datetime import UTC, datetime, timedelta

from protean.utils.globals import current_domain

from commerce.cart.service import cart_service, owner_key
from commerce.inventory.ledger import publish_stock_change
from commerce.order.order import ActorRole, Order, OrderStatus
from commerce.order.placement import PlaceOrder, PlaceOrderFromCart
from commerce.order.status import CancelOrder, RecordPayment, UpdateOrderStatus
from commerce.settings import get_settings
from commerce.utils.locking import cart_locks, order_locks, product_locks
from notifications.producers import notify_cart_update, notify_new_order, notify_order_status_change


def _publish_placement(outcome: dict) -> None:
    notify_new_order(outcome["user_id"], outcome["order_number"], outcome["total_amount"])
    for stock in outcome["stock"]:
        publish_stock_change(stock)


def _publish_status_change(outcome: dict) -> None:
    notify_order_status_change(
        outcome["user_id"],
        outcome["order_number"],
        outcome["previous_status"],
        outcome["new_status"],
    )
    for stock in outcome["stock"]:
        publish_stock_change(stock)


class OrderService:
    def _repo(self):
        return current_domain.repository_for(Order)

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def place_order(self, user_id, items, shipping_address_id, billing_address_id=None, notes=None) -> dict:
        """Create an order for ``items`` ({product_id, quantity} dicts), reserving all of them."""
        command = PlaceOrder(
            user_id=str(user_id),
            items=json.dumps(items),
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            notes=notes,
        )
        with product_locks.hold_all(str(item["product_id"]) for item in items):
            outcome = current_domain.process(command, asynchronous=False)

        _publish_placement(outcome)
        return outcome

    def checkout(self, user_id, shipping_address_id, billing_address_id=None, notes=None) -> dict:
        """Place an order from the user's cart and empty the cart."""
        command = PlaceOrderFromCart(
            user_id=str(user_id),
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            notes=notes,
        )
        with cart_locks.hold(owner_key(user_id=user_id)):
            cart = cart_service.get(user_id=user_id)
            product_ids = [str(line.product_id) for line in cart.items] if cart else []
            with product_locks.hold_all(product_ids):
                outcome = current_domain.process(command, asynchronous=False)

        _publish_placement(outcome)
        notify_cart_update(user_id, cart_service.summary(user_id=user_id).to_dict(), "PlaceOrderFromCart")
        return outcome

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def _locked_change(self, order_id, command) -> dict:
        with order_locks.hold(str(order_id)):
            order = self._repo().get(str(order_id))
            with product_locks.hold_all(str(item.product_id) for item in order.items):
                outcome = current_domain.process(command, asynchronous=False)

        _publish_status_change(outcome)
        return outcome

    def update_status(
        self,
        order_id,
        new_status,
        actor_role=ActorRole.ADMIN,
        changed_by=None,
        notes=None,
        refund_payment=False,
    ) -> dict:
        command = UpdateOrderStatus(
            order_id=str(order_id),
            new_status=OrderStatus.parse(new_status).value,
            actor_role=ActorRole(actor_role).value,
            changed_by=changed_by,
            notes=notes,
            refund_payment=refund_payment,
        )
        return self._locked_change(order_id, command)

    def cancel_order(self, order_id, reason=None, actor_role=ActorRole.CUSTOMER, actor_id=None, refund_payment=False):
        command = CancelOrder(
            order_id=str(order_id),
            reason=reason,
            actor_role=ActorRole(actor_role).value,
            cancelled_by=actor_id,
            refund_payment=refund_payment,
        )
        return self._locked_change(order_id, command)

    def record_payment(self, order_id) -> dict:
        with order_locks.hold(str(order_id)):
            return current_domain.process(RecordPayment(order_id=str(order_id)), asynchronous=False)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, order_id) -> Order:
        return self._repo().get(str(order_id))

    def get_by_number(self, order_number) -> Order | None:
        return self._repo().by_order_number(order_number)

    def orders_for_user(self, user_id, status=None) -> list[Order]:
        return self._repo().for_user(user_id, OrderStatus.parse(status) if status else None)

    def cancellable_orders(self, user_id) -> list[Order]:
        return self._repo().cancellable_for_user(user_id)

    def refundable_orders(self, user_id) -> list[Order]:
        return self._repo().refundable_for_user(user_id)

    def orders_requiring_attention(self, now: datetime | None = None) -> list[Order]:
        """Orders stuck in PROCESSING for longer than the configured threshold."""
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(hours=get_settings().attention_threshold_hours)
        return self._repo().processing_since_before(cutoff)

    def history(self, order_id) -> list:
        return self.get(order_id).sorted_history()


order_service = OrderService()
