"""Serial registry kept in step with the stock ledger."""

from __future__ import annotations

import sqlite3
from typing import Iterable, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import (
    DeviceSerial,
    InventoryAction,
    SerialStatus,
    StockBucket,
)
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.repositories.serial_repo import SerialRepository
from rental_inventory.repositories.warehouse_repo import WarehouseRepo
from rental_inventory.services.errors import (
    LedgerInconsistencyError,
    NotFoundError,
    ProductNotFoundError,
    SerialInUseError,
    SerialNotFoundError,
    SerialUnavailableError,
    ValidationError,
)
from rental_inventory.services.ledger_service import LedgerService


class SerialService:
    """Per-unit tracking for serialized products.

    A serial's status always names the bucket its unit is counted in. Each
    status change here runs in the same transaction as the matching ledger
    move of one unit.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._repo = SerialRepository(connection)
        self._product_repo = ProductRepo(connection)
        self._warehouse_repo = WarehouseRepo(connection)
        self._ledger = LedgerService(connection)
        self._logger = get_logger(self.__class__.__name__)

    def get_serial(self, serial_id: int) -> DeviceSerial:
        serial = self._repo.get_by_id(serial_id)
        if serial is None:
            raise SerialNotFoundError(serial_id)
        return serial

    def list_serials(
        self, product_id: int, status: Optional[SerialStatus] = None
    ) -> list[DeviceSerial]:
        return self._repo.list_for_product(product_id, status)

    def list_for_order(self, order_id: int) -> list[DeviceSerial]:
        return self._repo.list_for_order(order_id)

    def add_serial(
        self,
        product_id: int,
        serial_number: str,
        warehouse_id: int,
    ) -> DeviceSerial:
        """Register a new unit; it is received into the available bucket."""
        product = self._product_repo.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_serialized:
            raise ValidationError(f"Product {product.code} does not track serials.")
        if not serial_number or not serial_number.strip():
            raise ValidationError("Serial number is required.")
        if self._warehouse_repo.get_by_id(warehouse_id) is None:
            raise NotFoundError(f"Warehouse {warehouse_id} not found.")
        if self._repo.get_by_number(product_id, serial_number.strip()) is not None:
            raise ValidationError(
                f"Serial {serial_number.strip()} already exists for {product.code}."
            )
        with transaction(self._connection):
            serial = self._repo.create(product_id, serial_number.strip(), warehouse_id)
            self._ledger.receive(
                product_id,
                warehouse_id,
                1,
                note=f"Serial {serial.serial_number} added",
            )
        self._logger.info(
            "Serial %s added to product_id=%s", serial.serial_number, product_id
        )
        return serial

    def delete_serial(self, serial_id: int) -> None:
        """Remove an idle unit from the inventory."""
        with transaction(self._connection):
            serial = self.get_serial(serial_id)
            if serial.status != SerialStatus.AVAILABLE:
                raise SerialInUseError(serial_id, serial.status.value)
            self._ledger.retire(
                serial.product_id,
                serial.warehouse_id,
                1,
                note=f"Serial {serial.serial_number} deleted",
            )
            self._repo.delete(serial_id)
        self._logger.info("Serial %s deleted", serial.serial_number)

    def assign_serial(self, serial_id: int, order_id: int) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.AVAILABLE,),
            SerialStatus.RESERVED,
            InventoryAction.PREPARE,
            order_id=order_id,
        )

    def release_serial(self, serial_id: int) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.RESERVED,),
            SerialStatus.AVAILABLE,
            InventoryAction.RELEASE,
        )

    def ship_serial(self, serial_id: int) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.RESERVED,),
            SerialStatus.ON_RENT,
            InventoryAction.EXPORT,
        )

    def return_serial(self, serial_id: int) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.ON_RENT,),
            SerialStatus.DIRTY,
            InventoryAction.IMPORT,
        )

    def clean_serial(self, serial_id: int) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.DIRTY,),
            SerialStatus.AVAILABLE,
            InventoryAction.CLEAN,
        )

    def mark_broken(self, serial_id: int, note: Optional[str] = None) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.AVAILABLE, SerialStatus.DIRTY),
            SerialStatus.BROKEN,
            InventoryAction.DAMAGE,
            note=note,
        )

    def repair_serial(self, serial_id: int) -> DeviceSerial:
        return self._transition(
            serial_id,
            (SerialStatus.BROKEN,),
            SerialStatus.AVAILABLE,
            InventoryAction.REPAIR,
        )

    def sync_with_move(
        self,
        product_id: int,
        warehouse_id: int,
        from_bucket: StockBucket,
        to_bucket: StockBucket,
        quantity: int,
        *,
        order_id: Optional[int] = None,
        attach_order_id: Optional[int] = None,
    ) -> int:
        """Mirror a bulk ledger move on the serials of a serialized product.

        Must run inside the transaction that made the ledger move. Serials
        are picked oldest first; ``order_id`` limits the pick to serials held
        by that order.
        """
        product = self._product_repo.get_by_id(product_id)
        if product is None or not product.is_serialized or quantity <= 0:
            return 0
        moved = self._repo.transition_many(
            product_id,
            warehouse_id,
            SerialStatus(from_bucket.value),
            SerialStatus(to_bucket.value),
            quantity,
            order_id=order_id,
            attach_order_id=attach_order_id,
        )
        if moved != quantity:
            raise LedgerInconsistencyError(
                f"Only {moved} of {quantity} {from_bucket.value} serial(s) of "
                f"product {product_id} could follow the move to {to_bucket.value}."
            )
        return moved

    def _transition(
        self,
        serial_id: int,
        expected: Iterable[SerialStatus],
        target: SerialStatus,
        action: InventoryAction,
        *,
        order_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> DeviceSerial:
        expected = tuple(expected)
        with transaction(self._connection):
            serial = self.get_serial(serial_id)
            if serial.status not in expected:
                raise SerialUnavailableError(
                    serial_id,
                    serial.status.value,
                    " or ".join(status.value for status in expected),
                )
            if not target.holds_order:
                new_order_id = None
            elif order_id is not None:
                new_order_id = order_id
            else:
                new_order_id = serial.order_id
            self._ledger.move_stock(
                serial.product_id,
                serial.warehouse_id,
                serial.status.bucket,
                target.bucket,
                1,
                action=action,
                order_id=new_order_id if new_order_id is not None else serial.order_id,
                note=note or f"Serial {serial.serial_number}",
            )
            self._repo.set_status(serial_id, target, new_order_id)
        self._logger.info(
            "Serial %s %s -> %s",
            serial.serial_number,
            serial.status.value,
            target.value,
        )
        return self.get_serial(serial_id)
