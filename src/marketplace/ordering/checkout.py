"""Checkout for shipped orders — command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Text

from marketplace.domain import marketplace
from marketplace.ordering.order import FulfillmentType, Order, ShippingAddress
from marketplace.ordering.saga import place_from_cart


@marketplace.command(part_of="Order")
class Checkout:
    user_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: address dict


@marketplace.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(Checkout)
    def checkout(self, command):
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )
        if not shipping_address:
            raise ValidationError({"shipping_address": ["A shipping address is required"]})
        # Reject a malformed address before any stock is reserved
        ShippingAddress(**shipping_address)

        return place_from_cart(
            user_id=command.user_id,
            fulfillment_type=FulfillmentType.SHIPPED.value,
            shipping_address=shipping_address,
        )
