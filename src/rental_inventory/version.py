"""Version metadata for RentalInventory."""

__version__ = "0.1.0"
__app_name__ = "RentalInventory"
__company__ = "RentalInventory"
