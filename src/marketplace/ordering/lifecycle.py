"""Order lifecycle — processing, cancellation, pickup confirmation and delivery completion."""

import os
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.core.unit_of_work import UnitOfWork
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.notifications.dispatch import notify_delivered
from marketplace.ordering.order import Order, OrderStatus
from marketplace.ordering.saga import ReservationSaga
from marketplace.shared.errors import ActorNotPermitted

logger = structlog.get_logger(__name__)

DEFAULT_DELIVERY_DWELL_SECONDS = 180


def delivery_dwell() -> timedelta:
    """How long a shipped order stays in transit before it is considered delivered."""
    return timedelta(seconds=float(os.environ.get("DELIVERY_DWELL_SECONDS", DEFAULT_DELIVERY_DWELL_SECONDS)))


@marketplace.command(part_of="Order")
class MarkProcessing:
    """The seller started packing a shipped order."""

    order_id = Identifier(required=True)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@marketplace.command(part_of="Order")
class ConfirmPickup:
    """The customer confirms they collected a pickup order."""

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)


@marketplace.command(part_of="Order")
class CompleteDueDeliveries:
    """Deliver every shipped order whose dwell time has elapsed."""

    as_of = DateTime()


@marketplace.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(MarkProcessing)
    def mark_processing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.mark_processing()
        repo.add(order)

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        # A repeat cancel re-drives a stock restore that did not complete earlier
        if not order.awaits_stock_restore:
            with UnitOfWork():
                order = repo.get(command.order_id)
                order.cancel(reason=command.reason)
                repo.add(order)
            logger.info("order_cancelled", order_id=str(order.id), reason=command.reason)

        # Stock went out with the order; it comes back once the cancellation is durable
        ReservationSaga().compensate(order.reservation_lines(), order_id=str(order.id), trigger="order_cancelled")

        with UnitOfWork():
            order = repo.get(command.order_id)
            order.mark_stock_restored()
            repo.add(order)

    @handle(ConfirmPickup)
    def confirm_pickup(self, command):
        with UnitOfWork():
            repo = current_domain.repository_for(Order)
            order = repo.get(command.order_id)
            if str(order.user_id) != str(command.user_id):
                raise ActorNotPermitted("Only the purchaser can confirm a pickup")
            order.confirm_pickup()
            repo.add(order)

        logger.info("pickup_completed", order_id=str(order.id))
        notify_delivered(order)

    @handle(CompleteDueDeliveries)
    def complete_due_deliveries(self, command):
        as_of = command.as_of or datetime.now(UTC)
        dwell = delivery_dwell()
        repo = current_domain.repository_for(Order)

        candidates = repo._dao.query.filter(status=OrderStatus.IN_TRANSIT.value).all().items
        delivered = []
        for candidate in candidates:
            if not candidate.is_due_for_delivery(as_of, dwell):
                continue
            with UnitOfWork():
                order = repo.get(candidate.id)
                order.complete_delivery(as_of, dwell)
                repo.add(order)
            delivered.append(order)

        for order in delivered:
            notify_delivered(order)

        if delivered:
            logger.info("deliveries_completed", count=len(delivered), as_of=as_of.isoformat())
        return len(delivered)
