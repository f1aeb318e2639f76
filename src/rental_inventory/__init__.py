"""Equipment-rental inventory ledger and order lifecycle engine."""

from rental_inventory.version import __version__

__all__ = ["__version__"]
