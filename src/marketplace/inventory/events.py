"""Stock movement events.

Stock lives on the Product aggregate, so these events are part of Product,
but they are only ever raised through InventoryLedger operations.
"""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Product")
class StockReserved:
    """Stock was deducted as part of an all-or-nothing reservation."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class StockRestored:
    """Previously reserved stock was put back (cancellation or compensation)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    restored_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class StockAdjusted:
    """Administrative stock correction (restock, quick-edit, overwrite)."""

    __version__ = 1

    product_id = Identifier(required=True)
    mode = String(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    adjusted_at = DateTime(required=True)
