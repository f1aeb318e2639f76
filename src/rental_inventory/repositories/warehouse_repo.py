"""Repository for warehouse persistence."""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import Warehouse
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import warehouse_from_row


class WarehouseRepo:
    """CRUD operations for warehouses."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(self, name: str, address: Optional[str] = None) -> Warehouse:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    "INSERT INTO warehouses (name, address) VALUES (?, ?)",
                    (name, address),
                )
        except Exception:
            self._logger.exception("Failed to create warehouse")
            raise
        return Warehouse(id=cursor.lastrowid, name=name, address=address)

    def list_all(self) -> List[Warehouse]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM warehouses ORDER BY id"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list warehouses")
            raise
        return [warehouse_from_row(row) for row in rows]

    def get_by_id(self, warehouse_id: int) -> Optional[Warehouse]:
        try:
            row = self._connection.execute(
                "SELECT * FROM warehouses WHERE id = ?",
                (warehouse_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get warehouse id=%s", warehouse_id)
            raise
        return warehouse_from_row(row) if row else None

    def get_default(self) -> Optional[Warehouse]:
        """Return the first warehouse ever created."""
        try:
            row = self._connection.execute(
                "SELECT * FROM warehouses ORDER BY id LIMIT 1"
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get default warehouse")
            raise
        return warehouse_from_row(row) if row else None
