"""Cart item management — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.domain import marketplace
from marketplace.ordering.cart import ShoppingCart, cart_for


@marketplace.command(part_of="ShoppingCart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="ShoppingCart")
class RemoveFromCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)


@marketplace.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        try:
            current_domain.repository_for(Product).get(command.product_id)
        except ObjectNotFoundError:
            raise ValidationError({"product_id": ["Product does not exist"]}) from None

        cart = cart_for(command.user_id, create=True)
        cart.add_item(product_id=command.product_id, quantity=command.quantity)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = cart_for(command.user_id)
        if cart is None:
            raise ValidationError({"user_id": ["Cart is empty"]})
        cart.remove_item(product_id=command.product_id)
        current_domain.repository_for(ShoppingCart).add(cart)
