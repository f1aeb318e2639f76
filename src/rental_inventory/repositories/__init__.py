"""Repositories for data access."""

from rental_inventory.repositories.customer_repo import CustomerRepo
from rental_inventory.repositories.inventory_log_repo import InventoryLogRepository
from rental_inventory.repositories.mappers import (
    customer_from_row,
    log_entry_from_row,
    order_from_row,
    order_item_from_row,
    order_item_to_record,
    order_to_record,
    product_from_row,
    product_to_record,
    serial_from_row,
    stock_from_row,
    supplier_from_row,
    warehouse_from_row,
)
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.repositories.serial_repo import SerialRepository
from rental_inventory.repositories.stock_repo import StockRepository
from rental_inventory.repositories.supplier_repo import SupplierRepo
from rental_inventory.repositories.warehouse_repo import WarehouseRepo

__all__ = [
    "CustomerRepo",
    "customer_from_row",
    "InventoryLogRepository",
    "log_entry_from_row",
    "order_from_row",
    "order_item_from_row",
    "order_item_to_record",
    "order_to_record",
    "ProductRepo",
    "product_from_row",
    "product_to_record",
    "serial_from_row",
    "SerialRepository",
    "stock_from_row",
    "StockRepository",
    "supplier_from_row",
    "SupplierRepo",
    "warehouse_from_row",
    "WarehouseRepo",
]
