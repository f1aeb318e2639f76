"""Repository for product persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import Product
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import product_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class ProductRepo:
    """CRUD operations for products.

    ``total_owned`` is never written here directly except through
    :meth:`adjust_total_owned`, which the ledger calls in the same
    transaction as the matching bucket change.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self,
        code: str,
        name: str,
        category: Optional[str],
        price_per_day: float,
        is_serialized: bool = False,
        active: bool = True,
    ) -> Product:
        created_at = _now_iso()
        code = normalize_code(code)
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO products (
                        code,
                        name,
                        category,
                        price_per_day,
                        total_owned,
                        is_serialized,
                        active,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, 0, ?, ?, ?, ?)
                    """,
                    (
                        code,
                        name,
                        category,
                        price_per_day,
                        int(is_serialized),
                        int(active),
                        created_at,
                        created_at,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to create product code=%s", code)
            raise

        return Product(
            id=cursor.lastrowid,
            code=code,
            name=name,
            category=category,
            price_per_day=price_per_day,
            total_owned=0,
            is_serialized=is_serialized,
            active=active,
            created_at=created_at,
            updated_at=created_at,
        )

    def update(
        self,
        product_id: int,
        code: str,
        name: str,
        category: Optional[str],
        price_per_day: float,
        active: bool,
    ) -> Optional[Product]:
        updated_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE products
                    SET
                        code = ?,
                        name = ?,
                        category = ?,
                        price_per_day = ?,
                        active = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        normalize_code(code),
                        name,
                        category,
                        price_per_day,
                        int(active),
                        updated_at,
                        product_id,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to update product id=%s", product_id)
            raise

        if cursor.rowcount == 0:
            return None
        return self.get_by_id(product_id)

    def adjust_total_owned(self, product_id: int, delta: int) -> bool:
        updated_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE products
                    SET total_owned = total_owned + ?,
                        updated_at = ?
                    WHERE id = ?
                      AND total_owned + ? >= 0
                    """,
                    (delta, updated_at, product_id, delta),
                )
        except Exception:
            self._logger.exception(
                "Failed to adjust total_owned product id=%s delta=%s", product_id, delta
            )
            raise
        return cursor.rowcount > 0

    def soft_delete(self, product_id: int) -> bool:
        updated_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE products
                    SET active = 0,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (updated_at, product_id),
                )
        except Exception:
            self._logger.exception("Failed to soft delete product id=%s", product_id)
            raise
        return cursor.rowcount > 0

    def list_active(self) -> List[Product]:
        try:
            rows = self._connection.execute(
                """
                SELECT * FROM products
                WHERE active = 1
                ORDER BY name
                """
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list active products")
            raise
        return [product_from_row(row) for row in rows]

    def list_all(self) -> List[Product]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM products ORDER BY name"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list products")
            raise
        return [product_from_row(row) for row in rows]

    def search_by_name(
        self,
        term: str,
        *,
        include_inactive: bool = False,
    ) -> List[Product]:
        term = term.strip()
        if not term:
            return self.list_active() if not include_inactive else self.list_all()
        params = [f"%{term}%", f"%{term}%"]
        where = "(name LIKE ? OR code LIKE ?)"
        if not include_inactive:
            where += " AND active = 1"
        try:
            rows = self._connection.execute(
                f"SELECT * FROM products WHERE {where} ORDER BY name",
                params,
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to search products by name term=%s", term)
            raise
        return [product_from_row(row) for row in rows]

    def get_by_id(self, product_id: int) -> Optional[Product]:
        try:
            row = self._connection.execute(
                "SELECT * FROM products WHERE id = ?",
                (product_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get product id=%s", product_id)
            raise
        return product_from_row(row) if row else None

    def get_by_code(self, code: str) -> Optional[Product]:
        try:
            row = self._connection.execute(
                "SELECT * FROM products WHERE code = ?",
                (normalize_code(code),),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get product code=%s", code)
            raise
        return product_from_row(row) if row else None
