"""Payment gate — retailer confirms payment to the wholesaler, dropship legs start.

The payment front-end only tells us whether the payment was captured. Once
it was, the order's gate opens and every unlinked proxy line the retailer
sold is handed to the orchestrator.
"""

import structlog
from protean import handle
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.dropship.cost_basis import cost_basis_for
from marketplace.dropship.orchestrator import ProxyFulfillmentOrchestrator
from marketplace.ordering.order import Order
from marketplace.shared.actors import ActorRole

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class RecordWholesalerPayment:
    order_id = Identifier(required=True)
    retailer_id = Identifier(required=True)
    payment_captured = Boolean(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class WholesalerPaymentHandler:
    @handle(RecordWholesalerPayment)
    def record_wholesaler_payment(self, command):
        if not command.payment_captured:
            raise ValidationError({"payment_captured": ["Payment to the wholesaler has not been captured"]})

        role = ActorRole.parse(command.actor_role)
        retailer_id = str(command.retailer_id)
        orchestrator = ProxyFulfillmentOrchestrator()

        with UnitOfWork():
            repo = current_domain.repository_for(Order)
            order = repo.get(command.order_id)
            orchestrator.authorize(role, retailer_id, order)

            pending = [
                item
                for item in order.items
                if item.is_proxy and str(item.seller_id) == retailer_id and not item.fulfillment_order_id
            ]
            amount = round(sum(cost_basis_for(item).total(item.quantity) for item in pending), 2)
            opened = order.record_wholesaler_payment(retailer_id, amount)
            repo.add(order)

        if opened:
            logger.info("wholesaler_payment_recorded", order_id=str(order.id), retailer_id=retailer_id, amount=amount)

        return [orchestrator.fulfill(item.id, order.id) for item in pending]
