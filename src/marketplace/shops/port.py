"""Shop directory port — resolves a retailer to their registered shop address."""

from abc import ABC, abstractmethod


class ShopDirectoryPort(ABC):
    @abstractmethod
    def shop_address(self, retailer_id: str) -> dict | None:
        """Return the retailer's shop address as a dict of address fields, or None."""
        ...
