"""Shop directory abstraction — registered shop addresses of retailers."""

import os

_directory_instance = None


def get_shop_directory():
    """Return the configured shop directory (singleton).

    Uses the in-memory directory by default. Configure via the
    SHOP_DIRECTORY environment variable.
    """
    global _directory_instance
    if _directory_instance is None:
        adapter = os.environ.get("SHOP_DIRECTORY", "memory")
        if adapter == "memory":
            from marketplace.shops.memory_adapter import InMemoryShopDirectory

            _directory_instance = InMemoryShopDirectory()
        else:
            raise ValueError(f"Unknown shop directory: {adapter}")
    return _directory_instance


def reset_shop_directory():
    """Reset the directory singleton (useful for testing)."""
    global _directory_instance
    _directory_instance = None
