"""Stock ledger: the only entry point for changing bucket counters."""

from __future__ import annotations

import sqlite3
from typing import Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import InventoryAction, StockBucket, StockRecord
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.inventory_log_repo import InventoryLogRepository
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.repositories.stock_repo import StockRepository
from rental_inventory.repositories.warehouse_repo import WarehouseRepo
from rental_inventory.services.errors import (
    InsufficientStockError,
    LedgerInconsistencyError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
)


class LedgerService:
    """Moves units between the buckets of a (product, warehouse) stock record.

    Every move is applied together with its inventory log entry. Units enter
    or leave the ledger only through :meth:`receive` and :meth:`retire`, which
    change ``total_owned`` in the same transaction.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._stock_repo = StockRepository(connection)
        self._product_repo = ProductRepo(connection)
        self._warehouse_repo = WarehouseRepo(connection)
        self._log_repo = InventoryLogRepository(connection)
        self._logger = get_logger(self.__class__.__name__)

    def get_stock(self, product_id: int, warehouse_id: int) -> StockRecord:
        record = self._stock_repo.get(product_id, warehouse_id)
        if record is None:
            return StockRecord(product_id=product_id, warehouse_id=warehouse_id)
        return record

    def get_totals(self, product_id: int) -> StockRecord:
        return self._stock_repo.totals_for_product(product_id)

    def list_stock(self, product_id: int) -> list[StockRecord]:
        return self._stock_repo.list_for_product(product_id)

    def list_stock_in_bucket(self, bucket: StockBucket) -> list[sqlite3.Row]:
        return self._stock_repo.list_with_bucket(bucket)

    def move_stock(
        self,
        product_id: int,
        warehouse_id: int,
        from_bucket: StockBucket,
        to_bucket: StockBucket,
        quantity: int,
        *,
        action: InventoryAction,
        order_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> StockRecord:
        quantity = int(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity to move must be greater than zero.")
        if from_bucket == to_bucket:
            raise ValidationError("Source and destination buckets must differ.")
        with transaction(self._connection):
            if not self._stock_repo.move(
                product_id, warehouse_id, from_bucket, to_bucket, quantity
            ):
                current = self.get_stock(product_id, warehouse_id)
                raise InsufficientStockError(
                    product_id,
                    quantity,
                    current.get(from_bucket),
                    warehouse_id=warehouse_id,
                    bucket=from_bucket.value,
                )
            self._log_repo.append(
                product_id,
                action,
                quantity,
                warehouse_id=warehouse_id,
                order_id=order_id,
                from_bucket=from_bucket,
                to_bucket=to_bucket,
                note=note,
            )
        self._logger.info(
            "Moved %s unit(s) of product_id=%s warehouse_id=%s %s->%s (%s)",
            quantity,
            product_id,
            warehouse_id,
            from_bucket.value,
            to_bucket.value,
            action.value,
        )
        return self.get_stock(product_id, warehouse_id)

    def receive(
        self,
        product_id: int,
        warehouse_id: int,
        quantity: int,
        *,
        note: Optional[str] = None,
    ) -> StockRecord:
        """Bring newly acquired units into the available bucket."""
        quantity = int(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity to receive must be greater than zero.")
        self._require_product(product_id)
        self._require_warehouse(warehouse_id)
        with transaction(self._connection):
            self._stock_repo.acquire(
                product_id, warehouse_id, StockBucket.AVAILABLE, quantity
            )
            self._product_repo.adjust_total_owned(product_id, quantity)
            self._log_repo.append(
                product_id,
                InventoryAction.RECEIVE,
                quantity,
                warehouse_id=warehouse_id,
                to_bucket=StockBucket.AVAILABLE,
                note=note,
            )
        self._logger.info(
            "Received %s unit(s) of product_id=%s into warehouse_id=%s",
            quantity,
            product_id,
            warehouse_id,
        )
        return self.get_stock(product_id, warehouse_id)

    def retire(
        self,
        product_id: int,
        warehouse_id: int,
        quantity: int,
        *,
        from_bucket: StockBucket = StockBucket.AVAILABLE,
        note: Optional[str] = None,
    ) -> StockRecord:
        """Remove units from the inventory for good."""
        quantity = int(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity to retire must be greater than zero.")
        if from_bucket not in (StockBucket.AVAILABLE, StockBucket.BROKEN):
            raise ValidationError("Only available or broken units can be retired.")
        with transaction(self._connection):
            if not self._stock_repo.dispose(
                product_id, warehouse_id, from_bucket, quantity
            ):
                current = self.get_stock(product_id, warehouse_id)
                raise InsufficientStockError(
                    product_id,
                    quantity,
                    current.get(from_bucket),
                    warehouse_id=warehouse_id,
                    bucket=from_bucket.value,
                )
            if not self._product_repo.adjust_total_owned(product_id, -quantity):
                raise LedgerInconsistencyError(
                    f"Product {product_id} owns fewer units than its "
                    f"{from_bucket.value} bucket holds."
                )
            self._log_repo.append(
                product_id,
                InventoryAction.RETIRE,
                quantity,
                warehouse_id=warehouse_id,
                from_bucket=from_bucket,
                note=note,
            )
        self._logger.info(
            "Retired %s unit(s) of product_id=%s from warehouse_id=%s",
            quantity,
            product_id,
            warehouse_id,
        )
        return self.get_stock(product_id, warehouse_id)

    def verify_conservation(self, product_id: int) -> StockRecord:
        """Check that bucket totals add up to the units the product owns."""
        product = self._require_product(product_id)
        totals = self.get_totals(product_id)
        if totals.total != product.total_owned:
            raise LedgerInconsistencyError(
                f"Product {product_id} owns {product.total_owned} unit(s) but "
                f"its buckets hold {totals.total}: {totals.as_dict()}."
            )
        return totals

    def _require_product(self, product_id: int):
        product = self._product_repo.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _require_warehouse(self, warehouse_id: int) -> None:
        if self._warehouse_repo.get_by_id(warehouse_id) is None:
            raise NotFoundError(f"Warehouse {warehouse_id} not found.")
