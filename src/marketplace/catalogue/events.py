"""Domain events for catalogue listings."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Product")
class ProductListed:
    """A seller listed a product of their own stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock_quantity = Integer(required=True)
    listed_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class ProxyProductImported:
    """A retailer imported a wholesaler's product as a proxy listing."""

    __version__ = 1

    product_id = Identifier(required=True)
    retailer_id = Identifier(required=True)
    wholesaler_id = Identifier(required=True)
    wholesaler_product_id = Identifier(required=True)
    price = Float(required=True)
    wholesaler_price = Float(required=True)
    imported_at = DateTime(required=True)
