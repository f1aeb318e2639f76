"""Repository for per-warehouse stock bucket counters.

This is the only module that writes to the ``stocks`` table. Counters change
either by a move between two buckets or, when a unit is acquired or disposed
of, by a single-bucket change that the ledger pairs with ``total_owned``.
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import StockBucket, StockRecord
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import stock_from_row


class StockRepository:
    """Data access for stock records keyed by (product, warehouse)."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def get(self, product_id: int, warehouse_id: int) -> Optional[StockRecord]:
        try:
            row = self._connection.execute(
                """
                SELECT *
                FROM stocks
                WHERE product_id = ?
                  AND warehouse_id = ?
                """,
                (product_id, warehouse_id),
            ).fetchone()
        except Exception:
            self._logger.exception(
                "Failed to fetch stock product_id=%s warehouse_id=%s",
                product_id,
                warehouse_id,
            )
            raise
        return stock_from_row(row) if row else None

    def ensure(self, product_id: int, warehouse_id: int) -> StockRecord:
        try:
            with transaction(self._connection):
                self._connection.execute(
                    """
                    INSERT OR IGNORE INTO stocks (product_id, warehouse_id)
                    VALUES (?, ?)
                    """,
                    (product_id, warehouse_id),
                )
        except Exception:
            self._logger.exception(
                "Failed to ensure stock row product_id=%s warehouse_id=%s",
                product_id,
                warehouse_id,
            )
            raise
        record = self.get(product_id, warehouse_id)
        return record or StockRecord(product_id=product_id, warehouse_id=warehouse_id)

    def list_for_product(self, product_id: int) -> List[StockRecord]:
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM stocks
                WHERE product_id = ?
                ORDER BY warehouse_id
                """,
                (product_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list stock product_id=%s", product_id)
            raise
        return [stock_from_row(row) for row in rows]

    def totals_for_product(self, product_id: int) -> StockRecord:
        try:
            row = self._connection.execute(
                """
                SELECT
                    ? AS product_id,
                    NULL AS warehouse_id,
                    COALESCE(SUM(available_qty), 0) AS available_qty,
                    COALESCE(SUM(reserved_qty), 0) AS reserved_qty,
                    COALESCE(SUM(on_rent_qty), 0) AS on_rent_qty,
                    COALESCE(SUM(dirty_qty), 0) AS dirty_qty,
                    COALESCE(SUM(broken_qty), 0) AS broken_qty
                FROM stocks
                WHERE product_id = ?
                """,
                (product_id, product_id),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to sum stock product_id=%s", product_id)
            raise
        return stock_from_row(row)

    def list_with_bucket(self, bucket: StockBucket) -> List[sqlite3.Row]:
        """Return stock rows holding units in ``bucket``, with display names."""
        try:
            return self._connection.execute(
                f"""
                SELECT
                    s.product_id,
                    p.name AS product_name,
                    s.warehouse_id,
                    w.name AS warehouse_name,
                    s.{bucket.column} AS quantity
                FROM stocks s
                JOIN products p ON p.id = s.product_id
                JOIN warehouses w ON w.id = s.warehouse_id
                WHERE s.{bucket.column} > 0
                ORDER BY p.name, w.id
                """
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list stock in bucket=%s", bucket.value)
            raise

    def move(
        self,
        product_id: int,
        warehouse_id: int,
        from_bucket: StockBucket,
        to_bucket: StockBucket,
        quantity: int,
    ) -> bool:
        """Move units between two buckets; False when the source is short."""
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    f"""
                    UPDATE stocks
                    SET {from_bucket.column} = {from_bucket.column} - ?,
                        {to_bucket.column} = {to_bucket.column} + ?
                    WHERE product_id = ?
                      AND warehouse_id = ?
                      AND {from_bucket.column} >= ?
                    """,
                    (quantity, quantity, product_id, warehouse_id, quantity),
                )
        except Exception:
            self._logger.exception(
                "Failed to move stock product_id=%s warehouse_id=%s %s->%s qty=%s",
                product_id,
                warehouse_id,
                from_bucket.value,
                to_bucket.value,
                quantity,
            )
            raise
        return cursor.rowcount > 0

    def acquire(
        self,
        product_id: int,
        warehouse_id: int,
        bucket: StockBucket,
        quantity: int,
    ) -> None:
        self.ensure(product_id, warehouse_id)
        try:
            with transaction(self._connection):
                self._connection.execute(
                    f"""
                    UPDATE stocks
                    SET {bucket.column} = {bucket.column} + ?
                    WHERE product_id = ?
                      AND warehouse_id = ?
                    """,
                    (quantity, product_id, warehouse_id),
                )
        except Exception:
            self._logger.exception(
                "Failed to add stock product_id=%s warehouse_id=%s bucket=%s",
                product_id,
                warehouse_id,
                bucket.value,
            )
            raise

    def dispose(
        self,
        product_id: int,
        warehouse_id: int,
        bucket: StockBucket,
        quantity: int,
    ) -> bool:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    f"""
                    UPDATE stocks
                    SET {bucket.column} = {bucket.column} - ?
                    WHERE product_id = ?
                      AND warehouse_id = ?
                      AND {bucket.column} >= ?
                    """,
                    (quantity, product_id, warehouse_id, quantity),
                )
        except Exception:
            self._logger.exception(
                "Failed to remove stock product_id=%s warehouse_id=%s bucket=%s",
                product_id,
                warehouse_id,
                bucket.value,
            )
            raise
        return cursor.rowcount > 0
