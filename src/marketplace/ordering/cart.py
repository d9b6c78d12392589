"""Shopping cart aggregate (CQRS) — the lines a customer intends to buy.

A customer has one cart. Checkout and pickup scheduling read its lines,
reserve stock for them, and clear the cart once the order exists.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.ordering.events import CartCleared, CartItemAdded, CartItemRemoved


@marketplace.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@marketplace.aggregate
class ShoppingCart:
    user_id = Identifier(required=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, created_at=now, updated_at=now)

    def add_item(self, product_id, quantity):
        """Add a product to the cart (or increase quantity if already present)."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        now = datetime.now(UTC)
        if existing:
            existing.quantity += quantity
        else:
            self.add_items(CartItem(product_id=product_id, quantity=quantity, added_at=now))
        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                product_id=str(product_id),
                quantity=quantity,
            )
        )

    def remove_item(self, product_id):
        item = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        if item is None:
            raise ValidationError({"product_id": ["Product is not in the cart"]})

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                product_id=str(product_id),
            )
        )

    def lines(self):
        return [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.items]

    def clear(self):
        if not self.items:
            return
        self.remove_items(list(self.items))
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.id), user_id=str(self.user_id)))


def cart_for(user_id, create=False):
    """Fetch the customer's cart, optionally creating an empty one."""
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo._dao.query.filter(user_id=str(user_id)).all().first
    if cart is None and create:
        cart = ShoppingCart.create(user_id=user_id)
    return cart
