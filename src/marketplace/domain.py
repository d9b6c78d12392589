"""Marketplace bounded context — Inventory, Orders, Pickup and Dropship Fulfillment.

Handles atomic stock reservation across catalogue products, the order status
state machine (shipped delivery and in-store pickup), and the proxy/dropship
chain where a retailer resells a wholesaler's product and the wholesaler
ships it once the retailer has paid.
"""

import structlog
from protean.domain import Domain

from marketplace.utils.logging import configure_logging

configure_logging()

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
