"""InventoryLedger — the single point of truth for stock changes.

Every stock mutation in the marketplace goes through this module. A
reservation over several products is validated in full before anything is
written, then applied inside one unit of work, so callers never observe a
partial deduction.

Concurrent writers are detected through the aggregate version: if another
caller committed a change to the same product between our read and our
commit, the storage layer rejects the write with ``ExpectedVersionError``
and the whole reservation is re-evaluated against fresh stock.
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.shared.errors import InsufficientStock

logger = structlog.get_logger(__name__)

MAX_CONFLICT_RETRIES = 5


class AdjustmentMode(Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError({"mode": [f"Unknown adjustment mode '{value}'"]}) from None


@dataclass(frozen=True)
class ReservationLine:
    product_id: str
    quantity: int

    @classmethod
    def from_value(cls, value):
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(product_id=str(value["product_id"]), quantity=int(value["quantity"]))
        product_id, quantity = value
        return cls(product_id=str(product_id), quantity=int(quantity))


def merge_lines(items) -> list[ReservationLine]:
    """Collapse duplicate product lines so each product is checked once."""
    merged = OrderedDict()
    for item in items:
        line = ReservationLine.from_value(item)
        if line.quantity <= 0:
            raise ValidationError({"quantity": [f"Quantity for product {line.product_id} must be positive"]})
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return [ReservationLine(product_id=pid, quantity=qty) for pid, qty in merged.items()]


class InventoryLedger:
    """Atomic, all-or-nothing stock adjustments across one or many products."""

    def __init__(self, max_retries: int = MAX_CONFLICT_RETRIES):
        self.max_retries = max_retries

    def reserve(self, items) -> None:
        """Deduct stock for every line, or for none of them.

        Raises ``InsufficientStock`` naming every product that cannot cover
        its requested quantity. Unknown products are reported the same way.
        """
        lines = merge_lines(items)
        if not lines:
            raise ValidationError({"items": ["At least one item is required"]})

        for attempt in range(1, self.max_retries + 1):
            try:
                with UnitOfWork():
                    repo = current_domain.repository_for(Product)
                    products = self._load(repo, lines)

                    short = [line.product_id for line in lines if not products[line.product_id].can_supply(line.quantity)]
                    if short:
                        raise InsufficientStock(short)

                    for line in lines:
                        product = products[line.product_id]
                        product.reserve_stock(line.quantity)
                        repo.add(product)
            except ExpectedVersionError:
                logger.warning("stock_reservation_conflict", attempt=attempt, products=[line.product_id for line in lines])
                continue
            except InsufficientStock as exc:
                logger.info("stock_reservation_rejected", products=exc.product_ids)
                raise

            logger.info(
                "stock_reserved",
                lines=[{"product_id": line.product_id, "quantity": line.quantity} for line in lines],
            )
            return

        raise InsufficientStock(
            [line.product_id for line in lines],
            message="Stock is changing too quickly to reserve, please retry",
        )

    def restore(self, items) -> None:
        """Return stock taken by an earlier ``reserve`` (cancellation or compensation)."""
        lines = merge_lines(items)

        for attempt in range(1, self.max_retries + 1):
            try:
                with UnitOfWork():
                    repo = current_domain.repository_for(Product)
                    for line in lines:
                        product = repo.get(line.product_id)
                        product.restore_stock(line.quantity)
                        repo.add(product)
            except ExpectedVersionError:
                logger.warning("stock_restore_conflict", attempt=attempt)
                continue

            logger.info(
                "stock_restored",
                lines=[{"product_id": line.product_id, "quantity": line.quantity} for line in lines],
            )
            return

        raise ExpectedVersionError(f"Could not restore stock after {self.max_retries} attempts")

    def adjust(self, product_id, quantity, mode) -> int:
        """Administrative single-product adjustment. Returns the new stock level."""
        mode = AdjustmentMode.parse(mode)

        for attempt in range(1, self.max_retries + 1):
            try:
                with UnitOfWork():
                    repo = current_domain.repository_for(Product)
                    product = repo.get(product_id)
                    product.adjust_stock(quantity, mode.value)
                    repo.add(product)
                    new_stock = product.stock_quantity
            except ExpectedVersionError:
                logger.warning("stock_adjust_conflict", attempt=attempt, product_id=str(product_id))
                continue

            logger.info("stock_adjusted", product_id=str(product_id), mode=mode.value, new_stock=new_stock)
            return new_stock

        raise ExpectedVersionError(f"Could not adjust stock for {product_id} after {self.max_retries} attempts")

    @staticmethod
    def _load(repo, lines):
        products = {}
        missing = []
        for line in lines:
            try:
                products[line.product_id] = repo.get(line.product_id)
            except ObjectNotFoundError:
                missing.append(line.product_id)
        if missing:
            raise InsufficientStock(missing, message=f"Unknown product(s): {', '.join(missing)}")
        return products
