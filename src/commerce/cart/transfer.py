"""Guest cart transfer — merges a session cart into a user's cart at login."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.domain import commerce
from commerce.inventory.availability import validate_availability

logger = structlog.get_logger(__name__)


@commerce.command(part_of="ShoppingCart")
class TransferGuestCart:
    session_id = String(required=True, max_length=255)
    user_id = Identifier(required=True)


@commerce.command_handler(part_of=ShoppingCart)
class GuestCartTransferHandler:
    @handle(TransferGuestCart)
    def transfer_guest_cart(self, command):
        """Move the session's lines into the user's cart.

        Products in both carts get the combined quantity when the ledger can
        cover it; otherwise the user's quantity stays. Either way the session
        line is consumed. Running the transfer again is a no-op.
        """
        repo = current_domain.repository_for(ShoppingCart)
        guest_cart = repo.for_owner(session_id=command.session_id)
        if guest_cart is None or not guest_cart.items:
            return None

        cart = repo.for_owner(user_id=command.user_id)
        if cart is None:
            cart = ShoppingCart.create(user_id=command.user_id)

        accepted = {}
        for line in guest_cart.items:
            existing = cart.quantity_of(line.product_id)
            if not existing:
                continue

            combined = existing + line.quantity
            try:
                validate_availability(line.product_id, combined)
            except (ValidationError, ObjectNotFoundError) as exc:
                logger.warning(
                    "Combined cart quantity unavailable, keeping user's quantity",
                    user_id=str(command.user_id),
                    product_id=str(line.product_id),
                    combined_quantity=combined,
                    error=str(exc),
                )
                continue
            accepted[str(line.product_id)] = combined

        guest_lines = [(str(line.product_id), line.quantity) for line in guest_cart.items]
        cart.absorb_guest_lines(guest_lines, command.session_id, accepted)
        guest_cart.clear()

        repo.add(cart)
        repo.add(guest_cart)

        logger.info(
            "Guest cart transferred",
            user_id=str(command.user_id),
            session_id=command.session_id,
            lines=len(guest_lines),
        )
        return str(cart.id)
