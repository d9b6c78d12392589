"""ShippingDispatcher — role-scoped dispatch of an order.

Branches, by actor role:

* customer: never allowed to dispatch.
* retailer: their own stock. Shipped orders go in transit to the customer;
  pickup orders are marked ready at the retailer's shop.
* wholesaler, direct sale: same as a retailer shipping their own stock.
* wholesaler, dropship order: ships to the address recorded on the dropship
  order (the customer, or the retailer's shop for pickup orders). Allowed
  only once the retailer has paid, and the shipment time is copied onto the
  linked customer order.

Whatever the branch, the actor only dispatches lines it holds stock for.
Proxy lines never count: they leave with their wholesaler's dropship order,
and the customer order's delivery clock starts once every line has shipped.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

import structlog
from protean import handle
from protean.core.unit_of_work import UnitOfWork
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.ordering.order import Order
from marketplace.shared.actors import ActorRole
from marketplace.shared.errors import ActorNotPermitted, IllegalStateTransition
from marketplace.shops import get_shop_directory

logger = structlog.get_logger(__name__)

BRANCH_DIRECT = "direct"
BRANCH_PICKUP_READY = "pickup_ready"
BRANCH_PROXY = "proxy"


@dataclass(frozen=True)
class DispatchResult:
    order_id: str
    branch: str
    destination: dict | None
    shipped_at: datetime


class ShippingDispatcher:
    def dispatch(self, order_id, actor_id, actor_role) -> DispatchResult:
        role = ActorRole.parse(actor_role)
        actor_id = str(actor_id)

        with UnitOfWork():
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)

            if role is ActorRole.CUSTOMER:
                raise ActorNotPermitted("Customers cannot dispatch orders")
            elif role is ActorRole.RETAILER:
                result = self._dispatch_own_stock(repo, order, actor_id)
            elif role is ActorRole.WHOLESALER:
                if order.is_dropship:
                    result = self._dispatch_dropship(repo, order, actor_id)
                else:
                    result = self._dispatch_own_stock(repo, order, actor_id)
            else:
                assert_never(role)

        logger.info(
            "order_dispatched",
            order_id=result.order_id,
            branch=result.branch,
            actor_id=actor_id,
            actor_role=role.value,
        )
        return result

    @staticmethod
    def _assert_holds_stock(order, actor_id):
        if not order.sells_own_stock(actor_id):
            raise ActorNotPermitted(f"Actor {actor_id} holds no stock for any item on order {order.id}")

    def _dispatch_own_stock(self, repo, order, actor_id):
        self._assert_holds_stock(order, actor_id)
        if order.is_dropship:
            raise ActorNotPermitted("Dropship orders are dispatched by their wholesaler")

        shipped_at = order.dispatch(seller_id=actor_id)
        repo.add(order)

        if order.is_pickup:
            return DispatchResult(
                order_id=str(order.id),
                branch=BRANCH_PICKUP_READY,
                destination=get_shop_directory().shop_address(actor_id),
                shipped_at=shipped_at,
            )
        return DispatchResult(
            order_id=str(order.id),
            branch=BRANCH_DIRECT,
            destination=order.shipping_address.to_dict() if order.shipping_address else None,
            shipped_at=shipped_at,
        )

    def _dispatch_dropship(self, repo, order, actor_id):
        self._assert_holds_stock(order, actor_id)
        if str(order.owner_id) != actor_id:
            raise ActorNotPermitted(f"Dropship order {order.id} belongs to another wholesaler")
        if not order.wholesaler_payment_made:
            raise IllegalStateTransition("The retailer has not paid for this dropship order")

        shipped_at = order.dispatch(seller_id=actor_id)
        repo.add(order)

        customer_order = repo.get(order.wholesaler_fulfillment_order_id)
        customer_order.record_upstream_shipment(order.source_order_item_id, shipped_at)
        repo.add(customer_order)

        return DispatchResult(
            order_id=str(order.id),
            branch=BRANCH_PROXY,
            destination=order.shipping_address.to_dict() if order.shipping_address else None,
            shipped_at=shipped_at,
        )


@marketplace.command(part_of="Order")
class DispatchOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class DispatchOrderHandler:
    @handle(DispatchOrder)
    def dispatch_order(self, command):
        return ShippingDispatcher().dispatch(command.order_id, command.actor_id, command.actor_role)
