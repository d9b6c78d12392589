"""Error taxonomy for the marketplace core.

User-facing errors subclass Protean's ``ValidationError`` so the web layer
renders them as 400 responses with a field-keyed ``messages`` body.
``OrphanedReservation`` is internal and deliberately is not one of them.
"""

from protean.exceptions import ValidationError


class InsufficientStock(ValidationError):
    """One or more products cannot cover the requested quantity."""

    def __init__(self, product_ids, message=None):
        self.product_ids = [str(pid) for pid in product_ids]
        message = message or f"Insufficient stock for product(s): {', '.join(self.product_ids)}"
        super().__init__({"stock": [message]})


class WholesalerOutOfStock(InsufficientStock):
    def __init__(self, product_ids):
        super().__init__(product_ids, message="Wholesaler out of stock")


class InvalidSchedulingWindow(ValidationError):
    """A requested pickup slot broke one of the scheduling rules."""

    def __init__(self, rule, message):
        self.rule = rule
        super().__init__({"scheduled_at": [message]})


class IllegalStateTransition(ValidationError):
    def __init__(self, message):
        super().__init__({"status": [message]})


class LinkageInconsistency(ValidationError):
    """A proxy product's wholesaler linkage is missing or points at the wrong product."""

    def __init__(self, message):
        super().__init__({"product": [message]})


class ActorNotPermitted(ValidationError):
    def __init__(self, message):
        super().__init__({"actor": [message]})


class OrphanedReservation(Exception):
    """Stock was deducted but neither the dependent records nor the restore could be written.

    Raised only after the compensating restore exhausted its retries.
    """

    def __init__(self, lines, cause=None):
        self.lines = lines
        self.cause = cause
        super().__init__("Stock reservation could not be linked to an order or restored")
