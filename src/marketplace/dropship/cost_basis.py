"""Wholesaler cost basis for a proxy line.

The cost recorded on the order line when it was sold is authoritative. The
price-over-markup formula is only a fallback for lines that lack it, and a
stored value that disagrees with the formula is logged rather than trusted
blindly in either direction.
"""

from dataclasses import dataclass

import structlog

from marketplace.catalogue.product import retailer_markup

logger = structlog.get_logger(__name__)

DIVERGENCE_TOLERANCE = 0.01


@dataclass(frozen=True)
class CostBasis:
    unit_cost: float
    source: str  # "stored" or "derived"
    derived: float
    diverged: bool = False

    def total(self, quantity: int) -> float:
        return round(self.unit_cost * quantity, 2)


def cost_basis_for(item, markup: float | None = None) -> CostBasis:
    markup = markup or retailer_markup()
    derived = round(item.price_at_purchase / markup, 2)

    if item.wholesaler_price is None:
        logger.info("cost_basis_derived", order_item_id=str(item.id), unit_cost=derived, markup=markup)
        return CostBasis(unit_cost=derived, source="derived", derived=derived)

    stored = item.wholesaler_price
    diverged = abs(stored - derived) > DIVERGENCE_TOLERANCE
    if diverged:
        logger.warning(
            "cost_basis_divergence",
            integrity_event="cost_basis_divergence",
            order_item_id=str(item.id),
            stored=stored,
            derived=derived,
            markup=markup,
        )
    return CostBasis(unit_cost=stored, source="stored", derived=derived, diverged=diverged)
