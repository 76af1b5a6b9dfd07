"""Repository for the Order aggregate — lookups used by customers and operations."""

from datetime import datetime

from commerce.domain import commerce
from commerce.order.order import Order, OrderStatus, PaymentStatus


def _newest_first(orders):
    return sorted(orders, key=lambda order: order.created_at, reverse=True)


@commerce.repository(part_of=Order)
class OrderRepository:
    def _load(self, orders) -> list[Order]:
        # Reload through the repository so items and history come along
        return [self.get(order.id) for order in orders]

    def by_order_number(self, order_number: str) -> Order | None:
        orders = self._dao.query.filter(order_number=order_number).all().items
        return self.get(orders[0].id) if orders else None

    def order_number_exists(self, order_number: str) -> bool:
        return bool(self._dao.query.filter(order_number=order_number).all().items)

    def for_user(self, user_id, status: OrderStatus | None = None) -> list[Order]:
        """A user's orders, newest first, optionally limited to one status."""
        criteria = {"user_id": str(user_id)}
        if status is not None:
            criteria["status"] = status.value
        return _newest_first(self._load(self._dao.query.filter(**criteria).all().items))

    def cancellable_for_user(self, user_id) -> list[Order]:
        return [order for order in self.for_user(user_id) if order.can_be_cancelled]

    def refundable_for_user(self, user_id) -> list[Order]:
        orders = self.for_user(user_id, OrderStatus.DELIVERED)
        return [order for order in orders if order.payment_status == PaymentStatus.PAID.value]

    def processing_since_before(self, cutoff: datetime) -> list[Order]:
        """Orders that entered PROCESSING before ``cutoff`` and are still there, oldest first."""
        orders = self._dao.query.filter(status=OrderStatus.PROCESSING.value).all().items
        stale = [order for order in orders if order.status_changed_at and order.status_changed_at < cutoff]
        return sorted(self._load(stale), key=lambda order: order.status_changed_at)
