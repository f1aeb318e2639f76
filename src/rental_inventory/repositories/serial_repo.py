"""Repository for device serial persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import DeviceSerial, SerialStatus
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import serial_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def normalize_serial_number(serial_number: str) -> str:
    return (serial_number or "").strip().upper()


class SerialRepository:
    """Data access for per-unit device serials."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self, product_id: int, serial_number: str, warehouse_id: int
    ) -> DeviceSerial:
        created_at = _now_iso()
        serial_number = normalize_serial_number(serial_number)
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO device_serials (
                        product_id,
                        serial_number,
                        warehouse_id,
                        status,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        product_id,
                        serial_number,
                        warehouse_id,
                        SerialStatus.AVAILABLE.value,
                        created_at,
                        created_at,
                    ),
                )
        except Exception:
            self._logger.exception(
                "Failed to create serial product_id=%s serial=%s",
                product_id,
                serial_number,
            )
            raise
        return DeviceSerial(
            id=cursor.lastrowid,
            product_id=product_id,
            serial_number=serial_number,
            warehouse_id=warehouse_id,
            status=SerialStatus.AVAILABLE,
            created_at=created_at,
            updated_at=created_at,
        )

    def get_by_id(self, serial_id: int) -> Optional[DeviceSerial]:
        try:
            row = self._connection.execute(
                "SELECT * FROM device_serials WHERE id = ?",
                (serial_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get serial id=%s", serial_id)
            raise
        return serial_from_row(row) if row else None

    def get_by_number(
        self, product_id: int, serial_number: str
    ) -> Optional[DeviceSerial]:
        try:
            row = self._connection.execute(
                """
                SELECT *
                FROM device_serials
                WHERE product_id = ?
                  AND serial_number = ?
                """,
                (product_id, normalize_serial_number(serial_number)),
            ).fetchone()
        except Exception:
            self._logger.exception(
                "Failed to get serial product_id=%s serial=%s", product_id, serial_number
            )
            raise
        return serial_from_row(row) if row else None

    def list_for_product(
        self,
        product_id: int,
        status: Optional[SerialStatus] = None,
    ) -> List[DeviceSerial]:
        params: list[object] = [product_id]
        status_clause = ""
        if status is not None:
            status_clause = "AND status = ?"
            params.append(status.value)
        try:
            rows = self._connection.execute(
                f"""
                SELECT *
                FROM device_serials
                WHERE product_id = ?
                  {status_clause}
                ORDER BY serial_number
                """,
                params,
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list serials product_id=%s", product_id)
            raise
        return [serial_from_row(row) for row in rows]

    def list_for_order(self, order_id: int) -> List[DeviceSerial]:
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM device_serials
                WHERE order_id = ?
                ORDER BY product_id, serial_number
                """,
                (order_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list serials order_id=%s", order_id)
            raise
        return [serial_from_row(row) for row in rows]

    def set_status(
        self,
        serial_id: int,
        status: SerialStatus,
        order_id: Optional[int],
    ) -> bool:
        updated_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE device_serials
                    SET status = ?,
                        order_id = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (status.value, order_id, updated_at, serial_id),
                )
        except Exception:
            self._logger.exception("Failed to update serial id=%s", serial_id)
            raise
        return cursor.rowcount > 0

    def transition_many(
        self,
        product_id: int,
        warehouse_id: int,
        from_status: SerialStatus,
        to_status: SerialStatus,
        limit: int,
        *,
        order_id: Optional[int] = None,
        attach_order_id: Optional[int] = None,
    ) -> int:
        """Move up to ``limit`` serials between statuses, oldest first.

        When ``order_id`` is given only serials held by that order are
        touched. Serials becoming AVAILABLE or BROKEN are detached from their order;
        otherwise ``attach_order_id`` replaces the order they belong to.
        """
        if limit <= 0:
            return 0
        params: list[object] = [product_id, warehouse_id, from_status.value]
        order_clause = ""
        if order_id is not None:
            order_clause = "AND order_id = ?"
            params.append(order_id)
        params.append(limit)
        updated_at = _now_iso()
        try:
            with transaction(self._connection):
                ids = [
                    int(row["id"])
                    for row in self._connection.execute(
                        f"""
                        SELECT id
                        FROM device_serials
                        WHERE product_id = ?
                          AND warehouse_id = ?
                          AND status = ?
                          {order_clause}
                        ORDER BY id
                        LIMIT ?
                        """,
                        params,
                    ).fetchall()
                ]
                for serial_id in ids:
                    if not to_status.holds_order or attach_order_id is not None:
                        self._connection.execute(
                            """
                            UPDATE device_serials
                            SET status = ?, order_id = ?, updated_at = ?
                            WHERE id = ?
                            """,
                            (
                                to_status.value,
                                attach_order_id if to_status.holds_order else None,
                                updated_at,
                                serial_id,
                            ),
                        )
                    else:
                        self._connection.execute(
                            """
                            UPDATE device_serials
                            SET status = ?, updated_at = ?
                            WHERE id = ?
                            """,
                            (to_status.value, updated_at, serial_id),
                        )
        except Exception:
            self._logger.exception(
                "Failed to transition serials product_id=%s %s->%s",
                product_id,
                from_status.value,
                to_status.value,
            )
            raise
        return len(ids)

    def delete(self, serial_id: int) -> bool:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    "DELETE FROM device_serials WHERE id = ?",
                    (serial_id,),
                )
        except Exception:
            self._logger.exception("Failed to delete serial id=%s", serial_id)
            raise
        return cursor.rowcount > 0
