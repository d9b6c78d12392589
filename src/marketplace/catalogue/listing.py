"""Product listing and wholesaler import — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.domain import marketplace


@marketplace.command(part_of="Product")
class ListProduct:
    seller_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)


@marketplace.command(part_of="Product")
class ImportWholesalerProduct:
    """A retailer imports a wholesaler's product as a proxy listing."""

    retailer_id = Identifier(required=True)
    source_product_id = Identifier(required=True)


@marketplace.command_handler(part_of=Product)
class ListingHandler:
    @handle(ListProduct)
    def list_product(self, command):
        product = Product.create(
            seller_id=command.seller_id,
            name=command.name,
            price=command.price,
            stock_quantity=command.stock_quantity or 0,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(ImportWholesalerProduct)
    def import_wholesaler_product(self, command):
        repo = current_domain.repository_for(Product)
        try:
            source = repo.get(command.source_product_id)
        except ObjectNotFoundError:
            raise ValidationError({"source_product_id": ["Source product does not exist"]}) from None

        proxy = Product.import_from(source, retailer_id=command.retailer_id)
        repo.add(proxy)
        return str(proxy.id)
