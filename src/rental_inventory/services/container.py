"""Service container shared by the command line and scripts."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from rental_inventory.repositories import CustomerRepo, SupplierRepo
from rental_inventory.services.audit_log_service import AuditLogService
from rental_inventory.services.availability_service import AvailabilityService
from rental_inventory.services.forecast_service import ForecastService
from rental_inventory.services.ledger_service import LedgerService
from rental_inventory.services.order_service import OrderService
from rental_inventory.services.product_service import ProductService
from rental_inventory.services.serial_service import SerialService
from rental_inventory.services.warehouse_service import WarehouseService
from rental_inventory.utils.settings import InventorySettings


@dataclass(frozen=True)
class InventoryServices:
    """Shared repositories and services for dependency injection."""

    connection: sqlite3.Connection
    settings: InventorySettings
    customer_repo: CustomerRepo
    supplier_repo: SupplierRepo
    ledger_service: LedgerService
    serial_service: SerialService
    availability_service: AvailabilityService
    order_service: OrderService
    product_service: ProductService
    warehouse_service: WarehouseService
    forecast_service: ForecastService
    audit_log_service: AuditLogService


def build_services(
    connection: sqlite3.Connection,
    settings: InventorySettings | None = None,
) -> InventoryServices:
    settings = settings or InventorySettings()
    warehouse_id = settings.default_warehouse_id
    return InventoryServices(
        connection=connection,
        settings=settings,
        customer_repo=CustomerRepo(connection),
        supplier_repo=SupplierRepo(connection),
        ledger_service=LedgerService(connection),
        serial_service=SerialService(connection),
        availability_service=AvailabilityService(connection),
        order_service=OrderService(connection, warehouse_id),
        product_service=ProductService(connection, warehouse_id),
        warehouse_service=WarehouseService(connection, warehouse_id),
        forecast_service=ForecastService(connection),
        audit_log_service=AuditLogService(connection),
    )
