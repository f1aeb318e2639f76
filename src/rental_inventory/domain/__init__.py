"""Domain models for RentalInventory."""

from rental_inventory.domain.models import (
    COMMITTED_ORDER_STATUSES,
    USABLE_BUCKETS,
    Customer,
    DeviceSerial,
    InventoryAction,
    InventoryLogEntry,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    SerialStatus,
    StockBucket,
    StockRecord,
    Supplier,
    Warehouse,
)

__all__ = [
    "COMMITTED_ORDER_STATUSES",
    "Customer",
    "DeviceSerial",
    "InventoryAction",
    "InventoryLogEntry",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "SerialStatus",
    "StockBucket",
    "StockRecord",
    "Supplier",
    "USABLE_BUCKETS",
    "Warehouse",
]
