"""Repository for the append-only inventory log."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import InventoryAction, InventoryLogEntry, StockBucket
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import log_entry_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class InventoryLogRepository:
    """Insert and query inventory log entries. Entries are never updated."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def append(
        self,
        product_id: int,
        action: InventoryAction,
        quantity: int,
        *,
        warehouse_id: Optional[int] = None,
        order_id: Optional[int] = None,
        from_bucket: Optional[StockBucket] = None,
        to_bucket: Optional[StockBucket] = None,
        note: Optional[str] = None,
    ) -> InventoryLogEntry:
        timestamp = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO inventory_logs (
                        product_id,
                        warehouse_id,
                        order_id,
                        action,
                        quantity,
                        from_bucket,
                        to_bucket,
                        timestamp,
                        note
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        product_id,
                        warehouse_id,
                        order_id,
                        action.value,
                        quantity,
                        from_bucket.value if from_bucket else None,
                        to_bucket.value if to_bucket else None,
                        timestamp,
                        note,
                    ),
                )
        except Exception:
            self._logger.exception(
                "Failed to append inventory log product_id=%s action=%s",
                product_id,
                action.value,
            )
            raise
        return InventoryLogEntry(
            id=cursor.lastrowid,
            product_id=product_id,
            action=action,
            quantity=quantity,
            timestamp=timestamp,
            warehouse_id=warehouse_id,
            order_id=order_id,
            from_bucket=from_bucket,
            to_bucket=to_bucket,
            note=note,
        )

    def list_entries(
        self,
        *,
        product_id: Optional[int] = None,
        order_id: Optional[int] = None,
        action: Optional[InventoryAction] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> List[InventoryLogEntry]:
        clauses: list[str] = []
        params: list[object] = []
        if product_id is not None:
            clauses.append("product_id = ?")
            params.append(product_id)
        if order_id is not None:
            clauses.append("order_id = ?")
            params.append(order_id)
        if action is not None:
            clauses.append("action = ?")
            params.append(action.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if newest_first else "ASC"
        limit_clause = ""
        if limit is not None:
            limit_clause = "LIMIT ?"
            params.append(limit)
        try:
            rows = self._connection.execute(
                f"""
                SELECT *
                FROM inventory_logs
                {where}
                ORDER BY timestamp {direction}, id {direction}
                {limit_clause}
                """,
                params,
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list inventory logs")
            raise
        return [log_entry_from_row(row) for row in rows]
