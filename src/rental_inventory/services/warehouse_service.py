"""Warehouse floor operations: cleaning, damage, repair and task lists."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import (
    InventoryAction,
    OrderStatus,
    StockBucket,
    StockRecord,
    Warehouse,
)
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories import order_repo
from rental_inventory.repositories.warehouse_repo import WarehouseRepo
from rental_inventory.services.errors import (
    InsufficientDirtyStockError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from rental_inventory.services.ledger_service import LedgerService
from rental_inventory.services.serial_service import SerialService


@dataclass(frozen=True)
class PrepareTask:
    order_id: int
    item_id: int
    customer_name: str
    product_id: int
    product_name: str
    start_date: str
    quantity: int


@dataclass(frozen=True)
class ReturnTask:
    order_id: int
    item_id: int
    customer_name: str
    product_id: int
    product_name: str
    end_date: str
    quantity: int


@dataclass(frozen=True)
class CleanTask:
    product_id: int
    product_name: str
    warehouse_id: int
    warehouse_name: str
    quantity: int


@dataclass
class WarehouseTasks:
    to_prepare: list[PrepareTask] = field(default_factory=list)
    to_collect: list[ReturnTask] = field(default_factory=list)
    to_clean: list[CleanTask] = field(default_factory=list)


class WarehouseService:
    """Service for stock handled on the warehouse floor."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        default_warehouse_id: Optional[int] = None,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._default_warehouse_id = default_warehouse_id
        self._repo = WarehouseRepo(connection)
        self._ledger = LedgerService(connection)
        self._serials = SerialService(connection)
        self._logger = get_logger(self.__class__.__name__)

    def create_warehouse(self, name: str, address: Optional[str] = None) -> Warehouse:
        if not name or not name.strip():
            raise ValidationError("Warehouse name is required.")
        warehouse = self._repo.create(name.strip(), address)
        self._logger.info("Warehouse %s created", warehouse.name)
        return warehouse

    def list_warehouses(self) -> list[Warehouse]:
        return self._repo.list_all()

    def resolve_warehouse_id(self, warehouse_id: Optional[int] = None) -> int:
        """Return ``warehouse_id``, the configured default, or the first warehouse."""
        if warehouse_id is None:
            warehouse_id = self._default_warehouse_id
        if warehouse_id is not None:
            if self._repo.get_by_id(warehouse_id) is None:
                raise NotFoundError(f"Warehouse {warehouse_id} not found.")
            return warehouse_id
        warehouse = self._repo.get_default()
        if warehouse is None:
            raise NotFoundError("No warehouse has been set up.")
        return int(warehouse.id)

    def clean(
        self,
        product_id: int,
        quantity: int,
        warehouse_id: Optional[int] = None,
    ) -> StockRecord:
        """Make returned units rentable again (dirty -> available)."""
        warehouse_id = self.resolve_warehouse_id(warehouse_id)
        try:
            with transaction(self._connection):
                record = self._ledger.move_stock(
                    product_id,
                    warehouse_id,
                    StockBucket.DIRTY,
                    StockBucket.AVAILABLE,
                    quantity,
                    action=InventoryAction.CLEAN,
                )
                self._serials.sync_with_move(
                    product_id,
                    warehouse_id,
                    StockBucket.DIRTY,
                    StockBucket.AVAILABLE,
                    quantity,
                )
        except InsufficientStockError as exc:
            raise InsufficientDirtyStockError(
                product_id,
                exc.requested,
                exc.available,
                warehouse_id=warehouse_id,
                bucket=StockBucket.DIRTY.value,
            ) from exc
        return record

    def report_damage(
        self,
        product_id: int,
        quantity: int,
        *,
        from_bucket: StockBucket = StockBucket.AVAILABLE,
        warehouse_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> StockRecord:
        if from_bucket not in (StockBucket.AVAILABLE, StockBucket.DIRTY):
            raise ValidationError("Only available or dirty units can be marked broken.")
        warehouse_id = self.resolve_warehouse_id(warehouse_id)
        with transaction(self._connection):
            record = self._ledger.move_stock(
                product_id,
                warehouse_id,
                from_bucket,
                StockBucket.BROKEN,
                quantity,
                action=InventoryAction.DAMAGE,
                note=note,
            )
            self._serials.sync_with_move(
                product_id, warehouse_id, from_bucket, StockBucket.BROKEN, quantity
            )
        self._logger.warning(
            "%s unit(s) of product_id=%s reported broken", quantity, product_id
        )
        return record

    def repair(
        self,
        product_id: int,
        quantity: int,
        warehouse_id: Optional[int] = None,
    ) -> StockRecord:
        warehouse_id = self.resolve_warehouse_id(warehouse_id)
        with transaction(self._connection):
            record = self._ledger.move_stock(
                product_id,
                warehouse_id,
                StockBucket.BROKEN,
                StockBucket.AVAILABLE,
                quantity,
                action=InventoryAction.REPAIR,
            )
            self._serials.sync_with_move(
                product_id,
                warehouse_id,
                StockBucket.BROKEN,
                StockBucket.AVAILABLE,
                quantity,
            )
        return record

    def list_tasks(self) -> WarehouseTasks:
        """Work waiting on the floor: lines to prepare, units due back, stock to clean."""
        tasks = WarehouseTasks()
        for row in order_repo.list_open_lines(connection=self._connection):
            status = OrderStatus(row["status"])
            remaining_to_ship = int(row["quantity"]) - int(row["exported_quantity"])
            to_prepare = remaining_to_ship - int(row["reserved_quantity"])
            on_rent = int(row["exported_quantity"]) - int(row["returned_quantity"])
            if status == OrderStatus.BOOKED and to_prepare > 0:
                tasks.to_prepare.append(
                    PrepareTask(
                        order_id=int(row["order_id"]),
                        item_id=int(row["item_id"]),
                        customer_name=row["customer_name"],
                        product_id=int(row["product_id"]),
                        product_name=row["product_name"],
                        start_date=row["start_date"],
                        quantity=to_prepare,
                    )
                )
            if on_rent > 0:
                tasks.to_collect.append(
                    ReturnTask(
                        order_id=int(row["order_id"]),
                        item_id=int(row["item_id"]),
                        customer_name=row["customer_name"],
                        product_id=int(row["product_id"]),
                        product_name=row["product_name"],
                        end_date=row["end_date"],
                        quantity=on_rent,
                    )
                )
        tasks.to_collect.sort(key=lambda task: (task.end_date, task.order_id))
        for row in self._ledger.list_stock_in_bucket(StockBucket.DIRTY):
            tasks.to_clean.append(
                CleanTask(
                    product_id=int(row["product_id"]),
                    product_name=row["product_name"],
                    warehouse_id=int(row["warehouse_id"]),
                    warehouse_name=row["warehouse_name"],
                    quantity=int(row["quantity"]),
                )
            )
        return tasks
