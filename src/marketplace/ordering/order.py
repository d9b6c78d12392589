"""Order aggregate (CQRS) — a purchase and its line items.

One aggregate models both customer orders and the internal dropship orders
that tell a wholesaler what to ship on a retailer's behalf.

State Machine:
    pending → processing → in_transit → delivered
    pending → in_transit                      (dispatch straight from pending)
    pending → delivered                       (offline pickup, customer confirms)
    pending / processing → cancelled

Offline pickup orders collapse the middle states: a retailer marking the
order ready records ``shipped_at`` without changing ``status``, and
``pickup_status`` moves pending → completed alongside the final delivery.

Each seller dispatches only the lines it holds stock for; proxy lines are
shipped by their wholesaler through a dropship order. The order's
``shipped_at``, which starts the delivery clock, is set once every line has
left its seller.

Status never moves backward. Orders holding proxy lines cannot reach
in_transit or delivered until the retailer has paid the wholesaler.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.ordering.events import (
    DropshipOrderLinked,
    OrderCancelled,
    OrderDelivered,
    OrderDispatched,
    OrderPlaced,
    OrderProcessing,
    WholesalerPaymentRecorded,
)
from marketplace.shared.errors import IllegalStateTransition

RECONCILIATION_TOLERANCE = 0.01


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class FulfillmentType(Enum):
    SHIPPED = "shipped"
    OFFLINE_PICKUP = "offline_pickup"


class PickupStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class OrderType(Enum):
    CUSTOMER = "customer"
    DROPSHIP_INBOUND = "dropship_inbound"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,  # Offline pickup only
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_PAYMENT_GATED_STATES = {OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED}


def _as_utc(value):
    # Naive timestamps are stored as UTC
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Where an order goes. Captured at checkout and never edited afterwards."""

    recipient = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A line item. ``seller_id`` is the seller at the time of sale.

    For proxy lines the seller is the retailer, while ``wholesaler_id`` and
    ``wholesaler_product_id`` point at the party and product that physically
    ship it. ``fulfillment_order_id`` is set once the dropship order exists.
    ``shipped_at`` records when the line left whoever physically holds it.
    """

    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price_at_purchase = Float(required=True, min_value=0.0)
    wholesaler_price = Float(min_value=0.0)
    is_proxy = Boolean(default=False)
    wholesaler_id = Identifier()
    wholesaler_product_id = Identifier()
    fulfillment_order_id = Identifier()
    shipped_at = DateTime()

    @property
    def line_total(self) -> float:
        return self.price_at_purchase * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    user_id = Identifier(required=True)  # Purchaser; the retailer for dropship orders
    items = HasMany(OrderItem)
    total_amount = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    fulfillment_type = String(choices=FulfillmentType, default=FulfillmentType.SHIPPED.value)
    order_type = String(choices=OrderType, default=OrderType.CUSTOMER.value)
    shipping_address = ValueObject(ShippingAddress)

    # Offline pickup
    scheduled_at = DateTime()
    pickup_status = String(choices=PickupStatus)

    shipped_at = DateTime()
    delivered_at = DateTime()

    # Dropship linkage
    wholesaler_payment_made = Boolean(default=False)
    wholesaler_fulfillment_order_id = Identifier()
    owner_id = Identifier()  # Wholesaler that fulfills a dropship order
    source_order_item_id = Identifier()  # Customer order line a dropship order was created for

    cancellation_reason = String(max_length=500)
    stock_restored = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def proxy_lines_cannot_ship_before_wholesaler_is_paid(self):
        if (
            self.status in {state.value for state in _PAYMENT_GATED_STATES}
            and self.has_proxy_items
            and not self.wholesaler_payment_made
        ):
            raise ValidationError({"status": ["Proxy items cannot ship before the wholesaler is paid"]})

    @invariant.post
    def pickup_orders_must_have_a_slot(self):
        if self.fulfillment_type == FulfillmentType.OFFLINE_PICKUP.value and self.scheduled_at is None:
            raise ValidationError({"scheduled_at": ["Pickup orders require a scheduled slot"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, user_id, items_data, fulfillment_type, shipping_address=None, scheduled_at=None):
        """Create a customer order in ``pending`` from already-reserved lines.

        Args:
            user_id: The purchasing customer.
            items_data: List of dicts with product_id, seller_id, quantity,
                price_at_purchase and the proxy linkage fields.
            fulfillment_type: ``shipped`` or ``offline_pickup``.
            shipping_address: Dict with the address fields (shipped orders).
            scheduled_at: The validated pickup slot (pickup orders).
        """
        fulfillment = FulfillmentType(fulfillment_type)
        if fulfillment == FulfillmentType.SHIPPED and not shipping_address:
            raise ValidationError({"shipping_address": ["Shipped orders require a shipping address"]})

        return cls._build(
            user_id=user_id,
            items_data=items_data,
            fulfillment_type=fulfillment,
            order_type=OrderType.CUSTOMER,
            status=OrderStatus.PENDING,
            shipping_address=shipping_address,
            scheduled_at=scheduled_at,
            pickup_status=PickupStatus.PENDING.value if fulfillment == FulfillmentType.OFFLINE_PICKUP else None,
        )

    @classmethod
    def create_dropship(cls, retailer_id, wholesaler_id, customer_order_id, source_order_item_id, item_data, shipping_address):
        """Create the wholesaler's fulfillment order for one proxy line.

        Stock is already confirmed when this is called, so the order starts
        in ``in_transit`` and is addressed to its final destination.
        """
        return cls._build(
            user_id=retailer_id,
            items_data=[item_data],
            fulfillment_type=FulfillmentType.SHIPPED,
            order_type=OrderType.DROPSHIP_INBOUND,
            status=OrderStatus.IN_TRANSIT,
            shipping_address=shipping_address,
            owner_id=wholesaler_id,
            wholesaler_payment_made=True,
            wholesaler_fulfillment_order_id=customer_order_id,
            source_order_item_id=source_order_item_id,
        )

    @classmethod
    def _build(cls, user_id, items_data, fulfillment_type, order_type, status, shipping_address=None, **fields):
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        items = [OrderItem(**item) for item in items_data]
        address = ShippingAddress(**shipping_address) if shipping_address else None

        order = cls(
            user_id=user_id,
            fulfillment_type=fulfillment_type.value,
            order_type=order_type.value,
            status=status.value,
            shipping_address=address,
            created_at=now,
            updated_at=now,
            **fields,
        )
        with atomic_change(order):
            order.add_items(items)
            order.total_amount = round(sum(item.line_total for item in items), 2)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                fulfillment_type=order.fulfillment_type,
                order_type=order.order_type,
                item_count=len(items),
                total_amount=order.total_amount,
                scheduled_at=order.scheduled_at,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def has_proxy_items(self) -> bool:
        return any(item.is_proxy for item in self.items or [])

    @property
    def is_pickup(self) -> bool:
        return self.fulfillment_type == FulfillmentType.OFFLINE_PICKUP.value

    @property
    def is_dropship(self) -> bool:
        return self.order_type == OrderType.DROPSHIP_INBOUND.value

    def get_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"order_item_id": [f"Item {item_id} is not part of order {self.id}"]})
        return item

    def sells_own_stock(self, actor_id) -> bool:
        """Whether ``actor_id`` sells at least one line it holds stock for itself."""
        return any(not item.is_proxy and str(item.seller_id) == str(actor_id) for item in self.items)

    def reconciles(self) -> bool:
        """Whether the recorded total still matches the line items."""
        expected = sum(item.line_total for item in self.items)
        return abs(expected - (self.total_amount or 0.0)) <= RECONCILIATION_TOLERANCE

    def reservation_lines(self):
        return [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.items]

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise IllegalStateTransition(f"Cannot transition from {current.value} to {target_status.value}")

        if target_status == OrderStatus.DELIVERED and current == OrderStatus.PENDING and not self.is_pickup:
            raise IllegalStateTransition("Only pickup orders can be delivered straight from pending")

        if target_status in _PAYMENT_GATED_STATES and self.has_proxy_items and not self.wholesaler_payment_made:
            raise IllegalStateTransition(
                f"Cannot move to {target_status.value} before the wholesaler has been paid for proxy items"
            )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_processing(self):
        if self.is_pickup:
            raise IllegalStateTransition("Pickup orders do not pass through processing")
        self._assert_can_transition(OrderStatus.PROCESSING)

        now = datetime.now(UTC)
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = now
        self.raise_(OrderProcessing(order_id=str(self.id), started_at=now))

    def dispatch(self, seller_id=None, shipped_at=None):
        """Hand a seller's own lines over for delivery, or mark them ready at the store.

        Without ``seller_id`` every non-proxy line is dispatched. Pickup orders
        and orders that are already in transit (dropship orders, linked
        customer orders) keep their status. Returns the dispatch time.
        """
        lines = [
            item
            for item in self.items
            if not item.is_proxy and (seller_id is None or str(item.seller_id) == str(seller_id))
        ]
        if not lines:
            raise IllegalStateTransition(f"Order {self.id} has no lines held by {seller_id or 'its sellers'}")
        pending = [item for item in lines if item.shipped_at is None]
        if not pending:
            raise IllegalStateTransition(f"Order {self.id} has already been dispatched")

        current = OrderStatus(self.status)
        if current in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            raise IllegalStateTransition(f"Cannot dispatch an order that is {current.value}")

        shipped_at = shipped_at or datetime.now(UTC)
        if not self.is_pickup and current != OrderStatus.IN_TRANSIT:
            self._assert_can_transition(OrderStatus.IN_TRANSIT)
            self.status = OrderStatus.IN_TRANSIT.value
        elif self.has_proxy_items and not self.wholesaler_payment_made:
            raise IllegalStateTransition("Cannot dispatch proxy items before the wholesaler has been paid")

        for item in pending:
            item.shipped_at = shipped_at
        self._start_delivery_clock()
        self.updated_at = datetime.now(UTC)
        self.raise_(
            OrderDispatched(
                order_id=str(self.id),
                fulfillment_type=self.fulfillment_type,
                status=self.status,
                shipped_at=shipped_at,
            )
        )
        return shipped_at

    def record_upstream_shipment(self, order_item_id, shipped_at):
        """The wholesaler shipped the dropship order for one of our proxy lines."""
        item = self.get_item(order_item_id)
        if not item.is_proxy:
            raise IllegalStateTransition(f"Order item {order_item_id} is not shipped by a wholesaler")
        if item.shipped_at is not None:
            return

        item.shipped_at = shipped_at
        self._start_delivery_clock()
        self.updated_at = datetime.now(UTC)

    def _start_delivery_clock(self):
        if self.shipped_at is None and all(item.shipped_at for item in self.items):
            self.shipped_at = max((item.shipped_at for item in self.items), key=_as_utc)

    def confirm_pickup(self):
        """Customer confirms they collected the order at the store."""
        if not self.is_pickup:
            raise IllegalStateTransition("Only pickup orders can be confirmed as collected")
        if self.pickup_status == PickupStatus.COMPLETED.value:
            raise IllegalStateTransition("Pickup has already been completed")
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.pickup_status = PickupStatus.COMPLETED.value
        self.delivered_at = now
        self.updated_at = now
        self._raise_delivered(now)

    def is_due_for_delivery(self, as_of, dwell) -> bool:
        return (
            self.status == OrderStatus.IN_TRANSIT.value
            and not self.is_pickup
            and self.shipped_at is not None
            and _as_utc(self.shipped_at) + dwell <= _as_utc(as_of)
        )

    def complete_delivery(self, as_of, dwell):
        """Elapsed-time completion of a shipped order once the dwell time has passed."""
        if not self.is_due_for_delivery(as_of, dwell):
            raise IllegalStateTransition(f"Order {self.id} is not due for delivery")
        self._assert_can_transition(OrderStatus.DELIVERED)

        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = as_of
        self.updated_at = datetime.now(UTC)
        self._raise_delivered(as_of)

    def _raise_delivered(self, delivered_at):
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                user_id=str(self.user_id),
                fulfillment_type=self.fulfillment_type,
                delivered_at=delivered_at,
            )
        )

    def cancel(self, reason=None):
        previous = self.status
        self._assert_can_transition(OrderStatus.CANCELLED)
        if any(item.fulfillment_order_id for item in self.items):
            raise IllegalStateTransition("Orders with dropship fulfillment in progress cannot be cancelled")

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                reason=reason,
                cancelled_at=now,
            )
        )

    @property
    def awaits_stock_restore(self) -> bool:
        return self.status == OrderStatus.CANCELLED.value and not self.stock_restored

    def mark_stock_restored(self):
        if not self.awaits_stock_restore:
            raise IllegalStateTransition(f"Order {self.id} has no reserved stock to give back")
        self.stock_restored = True
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Dropship
    # -------------------------------------------------------------------
    def record_wholesaler_payment(self, retailer_id, amount):
        """Open the payment gate. Returns False if it was already open."""
        if not self.has_proxy_items:
            raise ValidationError({"order_id": [f"Order {self.id} has no proxy items to pay for"]})
        if self.status in (OrderStatus.CANCELLED.value, OrderStatus.DELIVERED.value):
            raise IllegalStateTransition(f"Cannot record wholesaler payment on a {self.status} order")
        if self.wholesaler_payment_made:
            return False

        now = datetime.now(UTC)
        self.wholesaler_payment_made = True
        self.updated_at = now
        self.raise_(
            WholesalerPaymentRecorded(
                order_id=str(self.id),
                retailer_id=str(retailer_id),
                amount=amount,
                recorded_at=now,
            )
        )
        return True

    def link_fulfillment(self, order_item_id, fulfillment_order_id):
        """Attach a dropship order to a proxy line and advance to in_transit.

        ``processing`` is skipped because the dropship leg is already committed.
        """
        item = self.get_item(order_item_id)
        if item.fulfillment_order_id and str(item.fulfillment_order_id) != str(fulfillment_order_id):
            raise IllegalStateTransition(f"Order item {order_item_id} is already linked to another fulfillment order")

        if OrderStatus(self.status) in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            self._assert_can_transition(OrderStatus.IN_TRANSIT)
            self.status = OrderStatus.IN_TRANSIT.value
        elif self.status != OrderStatus.IN_TRANSIT.value:
            raise IllegalStateTransition(f"Cannot link fulfillment to a {self.status} order")

        now = datetime.now(UTC)
        item.fulfillment_order_id = fulfillment_order_id
        if not self.wholesaler_fulfillment_order_id:
            self.wholesaler_fulfillment_order_id = fulfillment_order_id
        self.updated_at = now
        self.raise_(
            DropshipOrderLinked(
                order_id=str(self.id),
                order_item_id=str(order_item_id),
                fulfillment_order_id=str(fulfillment_order_id),
                linked_at=now,
            )
        )
