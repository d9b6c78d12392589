"""Offline pickup scheduling — command, handler and scheduler.

Scheduling reserves stock at booking time rather than at payment time: the
slot is validated, the cart's lines are reserved, and a pending pickup order
is written. A failure after the reservation restores the stock.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier

from marketplace.domain import marketplace
from marketplace.ordering.order import FulfillmentType, Order
from marketplace.ordering.saga import ReservationSaga, place_from_cart
from marketplace.pickup.window import PickupWindow, validate_pickup_slot

logger = structlog.get_logger(__name__)


class PickupScheduler:
    def __init__(self, window: PickupWindow | None = None, saga: ReservationSaga | None = None):
        self.window = window or PickupWindow.from_env()
        self.saga = saga

    def schedule(self, user_id, requested_at, now=None) -> str:
        slot = validate_pickup_slot(requested_at, now=now, window=self.window)
        order_id = place_from_cart(
            user_id=user_id,
            fulfillment_type=FulfillmentType.OFFLINE_PICKUP.value,
            scheduled_at=slot,
            saga=self.saga,
        )
        logger.info("pickup_scheduled", order_id=order_id, scheduled_at=slot.isoformat())
        return order_id


@marketplace.command(part_of="Order")
class SchedulePickup:
    user_id = Identifier(required=True)
    scheduled_at = DateTime(required=True)


@marketplace.command_handler(part_of=Order)
class SchedulePickupHandler:
    @handle(SchedulePickup)
    def schedule_pickup(self, command):
        return PickupScheduler().schedule(command.user_id, command.scheduled_at)
