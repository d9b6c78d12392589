"""In-memory shop directory, populated by registration calls."""

from marketplace.shops.port import ShopDirectoryPort


class InMemoryShopDirectory(ShopDirectoryPort):
    def __init__(self):
        self._shops = {}

    def register(self, retailer_id: str, address: dict) -> None:
        self._shops[str(retailer_id)] = dict(address)

    def shop_address(self, retailer_id: str) -> dict | None:
        address = self._shops.get(str(retailer_id))
        return dict(address) if address else None
