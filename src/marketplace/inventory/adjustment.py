"""Stock reservation and administrative adjustment — commands and handler."""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text

from marketplace.catalogue.product import Product
from marketplace.domain import marketplace
from marketplace.inventory.ledger import InventoryLedger


@marketplace.command(part_of="Product")
class ReserveStock:
    """Reserve stock across one or more products, all or nothing."""

    items = Text(required=True)  # JSON: [{"product_id": ..., "quantity": ...}]


@marketplace.command(part_of="Product")
class AdjustStock:
    """Manual restock, quick-edit correction or overwrite of a single product."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)
    mode = String(required=True, max_length=10)  # add, subtract, set


@marketplace.command_handler(part_of=Product)
class StockLedgerHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        InventoryLedger().reserve(json.loads(command.items))

    @handle(AdjustStock)
    def adjust_stock(self, command):
        return InventoryLedger().adjust(command.product_id, command.quantity, command.mode)
