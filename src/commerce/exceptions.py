"""Error taxonomy for the commerce domain.

Everything derives from Protean's exceptions so the FastAPI integration maps
validation failures to 400 and missing objects to 404. ``PermissionDenied``
is translated to 403 by the routes.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

NotFound = ObjectNotFoundError


class InsufficientStock(ValidationError):
    def __init__(self, product_id, available, requested):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            {"quantity": [f"Insufficient stock: {available} available, {requested} requested"]}
        )


class OutOfStock(ValidationError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__({"product_id": [f"Product {product_id} is out of stock"]})


class ProductUnavailable(ValidationError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__({"product_id": [f"Product {product_id} is not active and cannot be purchased"]})


class InvalidReservation(ValidationError):
    def __init__(self, product_id, reserved, requested, action="release"):
        self.product_id = product_id
        self.reserved = reserved
        self.requested = requested
        super().__init__(
            {"quantity": [f"Cannot {action} {requested} units: only {reserved} reserved"]}
        )


class InvalidStatusTransition(ValidationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]})


class DuplicateOrderNumber(ValidationError):
    def __init__(self, attempts):
        self.attempts = attempts
        super().__init__(
            {"order_number": [f"Could not allocate a unique order number after {attempts} attempts"]}
        )


class PermissionDenied(InvalidOperationError):
    """The actor is not allowed to perform the requested operation."""
