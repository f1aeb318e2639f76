"""Repository for supplier persistence."""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import Supplier
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import supplier_from_row


class SupplierRepo:
    """Suppliers fulfil external order lines."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(self, name: str, contact: Optional[str] = None) -> Supplier:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    "INSERT INTO suppliers (name, contact) VALUES (?, ?)",
                    (name, contact),
                )
        except Exception:
            self._logger.exception("Failed to create supplier")
            raise
        return Supplier(id=cursor.lastrowid, name=name, contact=contact)

    def update(
        self, supplier_id: int, name: str, contact: Optional[str]
    ) -> Optional[Supplier]:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    "UPDATE suppliers SET name = ?, contact = ? WHERE id = ?",
                    (name, contact, supplier_id),
                )
        except Exception:
            self._logger.exception("Failed to update supplier id=%s", supplier_id)
            raise
        if cursor.rowcount == 0:
            return None
        return Supplier(id=supplier_id, name=name, contact=contact)

    def delete(self, supplier_id: int) -> bool:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    "DELETE FROM suppliers WHERE id = ?",
                    (supplier_id,),
                )
        except Exception:
            self._logger.exception("Failed to delete supplier id=%s", supplier_id)
            raise
        return cursor.rowcount > 0

    def list_all(self) -> List[Supplier]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM suppliers ORDER BY name"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list suppliers")
            raise
        return [supplier_from_row(row) for row in rows]

    def get_by_id(self, supplier_id: int) -> Optional[Supplier]:
        try:
            row = self._connection.execute(
                "SELECT * FROM suppliers WHERE id = ?",
                (supplier_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get supplier id=%s", supplier_id)
            raise
        return supplier_from_row(row) if row else None
