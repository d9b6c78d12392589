"""Domain events for the Order and ShoppingCart aggregates."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A customer order (shipped or pickup) was created after stock was reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    fulfillment_type = String(required=True)
    order_type = String(required=True)
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    scheduled_at = DateTime()
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderDispatched:
    """The order left the seller: in transit, or ready at the store for pickup."""

    __version__ = 1

    order_id = Identifier(required=True)
    fulfillment_type = String(required=True)
    status = String(required=True)
    shipped_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    fulfillment_type = String(required=True)
    delivered_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class WholesalerPaymentRecorded:
    """The retailer confirmed payment to the wholesaler for the proxy lines."""

    __version__ = 1

    order_id = Identifier(required=True)
    retailer_id = Identifier(required=True)
    amount = Float(required=True)
    recorded_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class DropshipOrderLinked:
    """A proxy line of a customer order now has a wholesaler fulfillment order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    fulfillment_order_id = Identifier(required=True)
    linked_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Shopping cart
# ---------------------------------------------------------------------------
@marketplace.event(part_of="ShoppingCart")
class CartItemAdded:
    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartCleared:
    """The cart's lines became an order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
