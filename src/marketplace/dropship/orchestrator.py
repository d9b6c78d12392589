"""ProxyFulfillmentOrchestrator — turns a paid proxy line into a wholesaler shipment.

For one proxy line of a customer order, once the retailer has paid the
wholesaler:

    1. work out the wholesaler's cost basis for the line,
    2. reserve the quantity against the wholesaler's source product,
    3. create the internal dropship order owned by the wholesaler,
    4. link it to the customer order line and move the customer order to in_transit.

Steps 3 and 4 are written in one unit of work. If they fail, the stock
taken in step 2 is restored. Calling ``fulfill`` again for a line that is
already linked returns the existing dropship order instead of deducting
stock a second time.
"""

from typing import assert_never

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.dropship.cost_basis import cost_basis_for
from marketplace.ordering.order import Order, OrderStatus
from marketplace.ordering.saga import ReservationSaga
from marketplace.shared.actors import ActorRole
from marketplace.shared.errors import (
    ActorNotPermitted,
    IllegalStateTransition,
    InsufficientStock,
    LinkageInconsistency,
    WholesalerOutOfStock,
)
from marketplace.shops import get_shop_directory

logger = structlog.get_logger(__name__)


class ProxyFulfillmentOrchestrator:
    def __init__(self, saga: ReservationSaga | None = None):
        self.saga = saga or ReservationSaga()

    @staticmethod
    def authorize(role: ActorRole, actor_id, order) -> None:
        """Only the retailer who sold a proxy line may open its payment gate."""
        if role is ActorRole.CUSTOMER:
            raise ActorNotPermitted("Customers cannot confirm wholesaler payments")
        elif role is ActorRole.WHOLESALER:
            raise ActorNotPermitted("Wholesalers cannot confirm their own payment")
        elif role is ActorRole.RETAILER:
            if not any(item.is_proxy and str(item.seller_id) == str(actor_id) for item in order.items):
                raise ActorNotPermitted(f"Retailer {actor_id} sold no proxy items on order {order.id}")
        else:
            assert_never(role)

    def fulfill(self, order_item_id, customer_order_id) -> str:
        """Create (or return the existing) dropship order for a paid proxy line."""
        orders = current_domain.repository_for(Order)
        order = orders.get(customer_order_id)
        item = order.get_item(order_item_id)

        if not item.is_proxy:
            raise LinkageInconsistency(f"Order item {order_item_id} is not a proxy item")

        existing_id = self._existing_fulfillment(orders, order, item)
        if existing_id:
            logger.info(
                "dropship_already_fulfilled",
                order_id=str(order.id),
                order_item_id=str(item.id),
                fulfillment_order_id=existing_id,
            )
            return existing_id

        source = self._verify_linkage(item)

        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.DELIVERED.value):
            raise IllegalStateTransition(f"Cannot fulfill items of a {order.status} order")
        if not order.wholesaler_payment_made:
            raise IllegalStateTransition("The wholesaler has not been paid for this order")

        cost = cost_basis_for(item)
        destination = self._destination(order, item)
        lines = [{"product_id": str(source.id), "quantity": item.quantity}]

        def create_and_link():
            with UnitOfWork():
                dropship = Order.create_dropship(
                    retailer_id=item.seller_id,
                    wholesaler_id=item.wholesaler_id,
                    customer_order_id=str(order.id),
                    source_order_item_id=str(item.id),
                    item_data={
                        "product_id": str(source.id),
                        "seller_id": str(source.seller_id),
                        "quantity": item.quantity,
                        "price_at_purchase": cost.unit_cost,
                    },
                    shipping_address=destination,
                )
                orders.add(dropship)

                customer_order = orders.get(order.id)
                customer_order.link_fulfillment(item.id, dropship.id)
                orders.add(customer_order)
            return str(dropship.id)

        try:
            fulfillment_order_id = self.saga.run(
                lines,
                create_and_link,
                order_id=str(order.id),
                order_item_id=str(item.id),
            )
        except InsufficientStock as exc:
            if isinstance(exc, WholesalerOutOfStock):
                raise
            raise WholesalerOutOfStock([source.id]) from exc

        logger.info(
            "dropship_order_created",
            order_id=str(order.id),
            order_item_id=str(item.id),
            fulfillment_order_id=fulfillment_order_id,
            wholesaler_id=str(item.wholesaler_id),
            cost_basis=cost.unit_cost,
            cost_source=cost.source,
        )
        return fulfillment_order_id

    @staticmethod
    def _existing_fulfillment(orders, order, item):
        if item.fulfillment_order_id:
            return str(item.fulfillment_order_id)

        dropship = orders._dao.query.filter(source_order_item_id=str(item.id)).all().first
        if dropship is None:
            return None

        # Dropship order exists but the line never got linked
        with UnitOfWork():
            customer_order = orders.get(order.id)
            customer_order.link_fulfillment(item.id, dropship.id)
            orders.add(customer_order)
        return str(dropship.id)

    @staticmethod
    def _verify_linkage(item):
        if not item.wholesaler_id or not item.wholesaler_product_id:
            raise LinkageInconsistency(f"Proxy item {item.id} has no wholesaler linkage")

        try:
            source = current_domain.repository_for(Product).get(item.wholesaler_product_id)
        except ObjectNotFoundError:
            raise LinkageInconsistency(f"Source product {item.wholesaler_product_id} does not exist") from None

        if source.is_proxy:
            raise LinkageInconsistency(f"Source product {source.id} is itself a proxy listing")
        if str(source.seller_id) != str(item.wholesaler_id):
            raise LinkageInconsistency(
                f"Source product {source.id} is not owned by wholesaler {item.wholesaler_id}"
            )
        return source

    @staticmethod
    def _destination(order, item):
        """Pickup orders go to the retailer's shop; shipped orders go straight to the customer."""
        if order.is_pickup:
            address = get_shop_directory().shop_address(str(item.seller_id))
            if address is None:
                raise ValidationError({"shop": [f"Retailer {item.seller_id} has no registered shop address"]})
            return address
        return order.shipping_address.to_dict() if order.shipping_address else None
