"""Product aggregate (CQRS) — a catalogue listing with its sellable stock.

A product is owned by one seller. Retailers may import a wholesaler's
product as a *proxy* listing: the retailer owns the listing and sets the
price, while the wholesaler's original product remains the physical source.

``stock_quantity`` is the authoritative available-to-sell count. It is only
changed through InventoryLedger, which calls the stock methods below inside
its own unit of work.
"""

import os
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from marketplace.catalogue.events import ProductListed, ProxyProductImported
from marketplace.domain import marketplace
from marketplace.inventory.events import StockAdjusted, StockReserved, StockRestored
from marketplace.shared.errors import InsufficientStock, LinkageInconsistency

DEFAULT_RETAILER_MARKUP = 1.15


def retailer_markup() -> float:
    """Markup applied to a wholesaler's price when a retailer imports it."""
    return float(os.environ.get("RETAILER_MARKUP", DEFAULT_RETAILER_MARKUP))


@marketplace.aggregate
class Product:
    seller_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)

    # Proxy linkage
    is_proxy = Boolean(default=False)
    wholesaler_product_id = Identifier()
    wholesaler_id = Identifier()
    wholesaler_price = Float(min_value=0.0)  # Cost basis recorded at import time

    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def proxy_listing_must_be_linked(self):
        if self.is_proxy and (not self.wholesaler_product_id or not self.wholesaler_id):
            raise ValidationError(
                {"is_proxy": ["A proxy product must reference a wholesaler and the wholesaler's product"]}
            )

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, seller_id, name, price, stock_quantity=0):
        """List a product sold from the seller's own stock."""
        now = datetime.now(UTC)
        product = cls(
            seller_id=seller_id,
            name=name,
            price=price,
            stock_quantity=stock_quantity,
            is_proxy=False,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductListed(
                product_id=str(product.id),
                seller_id=str(seller_id),
                name=name,
                price=price,
                stock_quantity=stock_quantity,
                listed_at=now,
            )
        )
        return product

    @classmethod
    def import_from(cls, source, retailer_id, markup=None):
        """Create a retailer-owned proxy listing that mirrors a wholesaler's product."""
        if source.is_proxy:
            raise LinkageInconsistency("Only a wholesaler's original product can be imported, not another proxy")
        if str(source.seller_id) == str(retailer_id):
            raise ValidationError({"retailer_id": ["A seller cannot import their own product"]})

        markup = markup or retailer_markup()
        now = datetime.now(UTC)
        price = round(source.price * markup, 2)
        proxy = cls(
            seller_id=retailer_id,
            name=source.name,
            price=price,
            stock_quantity=source.stock_quantity,
            is_proxy=True,
            wholesaler_product_id=str(source.id),
            wholesaler_id=str(source.seller_id),
            wholesaler_price=source.price,
            created_at=now,
            updated_at=now,
        )
        proxy.raise_(
            ProxyProductImported(
                product_id=str(proxy.id),
                retailer_id=str(retailer_id),
                wholesaler_id=str(source.seller_id),
                wholesaler_product_id=str(source.id),
                price=price,
                wholesaler_price=source.price,
                imported_at=now,
            )
        )
        return proxy

    # -------------------------------------------------------------------
    # Stock (driven by InventoryLedger)
    # -------------------------------------------------------------------
    def can_supply(self, quantity: int) -> bool:
        return (self.stock_quantity or 0) - quantity >= 0

    def reserve_stock(self, quantity: int) -> None:
        """Deduct stock for a reservation; never lets the count go negative."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.can_supply(quantity):
            raise InsufficientStock([self.id])

        previous = self.stock_quantity or 0
        now = datetime.now(UTC)
        self.stock_quantity = previous - quantity
        self.updated_at = now
        self.raise_(
            StockReserved(
                product_id=str(self.id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock_quantity,
                reserved_at=now,
            )
        )

    def restore_stock(self, quantity: int) -> None:
        """Put back stock that an earlier reservation took."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.stock_quantity or 0
        now = datetime.now(UTC)
        self.stock_quantity = previous + quantity
        self.updated_at = now
        self.raise_(
            StockRestored(
                product_id=str(self.id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock_quantity,
                restored_at=now,
            )
        )

    def adjust_stock(self, quantity: int, mode: str) -> None:
        """Administrative adjustment: ``add``, ``subtract`` or ``set``."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})

        previous = self.stock_quantity or 0
        if mode == "add":
            new_stock = previous + quantity
        elif mode == "subtract":
            if previous - quantity < 0:
                raise InsufficientStock([self.id])
            new_stock = previous - quantity
        elif mode == "set":
            new_stock = quantity
        else:
            raise ValidationError({"mode": [f"Unknown adjustment mode '{mode}'"]})

        now = datetime.now(UTC)
        self.stock_quantity = new_stock
        self.updated_at = now
        self.raise_(
            StockAdjusted(
                product_id=str(self.id),
                mode=mode,
                quantity=quantity,
                previous_stock=previous,
                new_stock=new_stock,
                adjusted_at=now,
            )
        )
