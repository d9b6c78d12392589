"""Reservation saga — reserve stock first, then write the records that depend on it.

Stock is reserved in its own unit of work. The dependent writes (order,
line items, cart clearing, dropship links) run in a second one. If that
second step fails, the reservation is compensated by restoring the stock,
retried a few times. Only when every restore attempt fails does the saga
raise ``OrphanedReservation``; otherwise the original error propagates to
the caller unchanged.

Flow:
    1. InventoryLedger.reserve(lines)          (all or nothing)
    2. step()                                  (dependent records)
    3. on failure of 2: InventoryLedger.restore(lines), then re-raise
"""

import os

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.inventory.ledger import InventoryLedger
from marketplace.ordering.cart import ShoppingCart, cart_for
from marketplace.ordering.order import Order
from marketplace.shared.errors import OrphanedReservation

logger = structlog.get_logger(__name__)

DEFAULT_COMPENSATION_ATTEMPTS = 3


def compensation_attempts() -> int:
    return int(os.environ.get("COMPENSATION_ATTEMPTS", DEFAULT_COMPENSATION_ATTEMPTS))


class ReservationSaga:
    def __init__(self, ledger: InventoryLedger | None = None, attempts: int | None = None):
        self.ledger = ledger or InventoryLedger()
        self.attempts = attempts or compensation_attempts()

    def run(self, lines, step, **context):
        """Reserve ``lines``, then call ``step``; restore the stock if ``step`` fails."""
        self.ledger.reserve(lines)
        try:
            return step()
        except Exception as exc:
            logger.warning("saga_step_failed", error=str(exc), **context)
            self.compensate(lines, cause=exc, **context)
            raise

    def compensate(self, lines, cause=None, **context):
        last_error = None
        for attempt in range(1, self.attempts + 1):
            try:
                self.ledger.restore(lines)
            except Exception as exc:
                last_error = exc
                logger.warning("compensation_attempt_failed", attempt=attempt, error=str(exc), **context)
                continue

            if cause is None:
                logger.info("reservation_released", attempt=attempt, lines=lines, **context)
                return
            logger.warning(
                "reservation_compensated",
                integrity_event="orphaned_reservation",
                compensated=True,
                attempt=attempt,
                lines=lines,
                cause=str(cause) if cause else None,
                **context,
            )
            return

        logger.error(
            "reservation_orphaned",
            integrity_event="orphaned_reservation",
            compensated=False,
            attempts=self.attempts,
            lines=lines,
            cause=str(cause) if cause else None,
            **context,
        )
        raise OrphanedReservation(lines, cause=cause) from last_error


def build_order_lines(cart_lines):
    """Snapshot catalogue data onto order lines at the moment of sale."""
    repo = current_domain.repository_for(Product)
    items_data = []
    for line in cart_lines:
        try:
            product = repo.get(line["product_id"])
        except ObjectNotFoundError:
            raise ValidationError({"product_id": [f"Product {line['product_id']} no longer exists"]}) from None

        items_data.append(
            {
                "product_id": str(product.id),
                "seller_id": str(product.seller_id),
                "quantity": line["quantity"],
                "price_at_purchase": product.price,
                "is_proxy": bool(product.is_proxy),
                "wholesaler_id": product.wholesaler_id,
                "wholesaler_product_id": product.wholesaler_product_id,
                "wholesaler_price": product.wholesaler_price,
            }
        )
    return items_data


def place_from_cart(user_id, fulfillment_type, shipping_address=None, scheduled_at=None, saga=None):
    """Turn the customer's cart into a pending order. Returns the order id."""
    cart = cart_for(user_id)
    if cart is None or not cart.items:
        raise ValidationError({"cart": ["Cart is empty"]})

    lines = cart.lines()
    items_data = build_order_lines(lines)

    def create_records():
        with UnitOfWork():
            order = Order.place(
                user_id=user_id,
                items_data=items_data,
                fulfillment_type=fulfillment_type,
                shipping_address=shipping_address,
                scheduled_at=scheduled_at,
            )
            current_domain.repository_for(Order).add(order)

            fresh_cart = current_domain.repository_for(ShoppingCart).get(cart.id)
            fresh_cart.clear()
            current_domain.repository_for(ShoppingCart).add(fresh_cart)
        return str(order.id)

    saga = saga or ReservationSaga()
    order_id = saga.run(lines, create_records, user_id=str(user_id), fulfillment_type=fulfillment_type)
    logger.info("order_placed", order_id=order_id, user_id=str(user_id), fulfillment_type=fulfillment_type)
    return order_id
