"""Actor roles supplied by the identity provider.

The identity provider hands the core an opaque ``(user_id, role)`` pair.
Roles form a closed set; callers convert the raw string once with
``ActorRole.parse`` and branch on the enum members.
"""

from enum import Enum

from protean.exceptions import ValidationError


class ActorRole(Enum):
    CUSTOMER = "customer"
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError({"actor_role": [f"Unknown actor role '{value}'"]}) from None
