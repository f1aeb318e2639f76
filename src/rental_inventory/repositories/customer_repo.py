"""Repository for customers who place rental orders."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import COMMITTED_ORDER_STATUSES, Customer
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import customer_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CustomerRepo:
    """Customer records. A customer with orders on file is never deleted."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self,
        name: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Customer:
        created_at = _now_iso()
        name = name.strip()
        phone = _clean(phone)
        email = _clean(email.lower() if email else email)
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO customers (name, phone, email, notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (name, phone, email, notes, created_at, created_at),
                )
        except Exception:
            self._logger.exception("Failed to create customer name=%s", name)
            raise
        return Customer(
            id=cursor.lastrowid,
            name=name,
            phone=phone,
            email=email,
            notes=notes,
            created_at=created_at,
            updated_at=created_at,
        )

    def update(
        self,
        customer_id: int,
        name: str,
        phone: Optional[str],
        email: Optional[str],
        notes: Optional[str],
    ) -> Optional[Customer]:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE customers
                    SET name = ?, phone = ?, email = ?, notes = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        name.strip(),
                        _clean(phone),
                        _clean(email.lower() if email else email),
                        notes,
                        _now_iso(),
                        customer_id,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to update customer id=%s", customer_id)
            raise
        return self.get_by_id(customer_id) if cursor.rowcount else None

    def delete(self, customer_id: int) -> bool:
        """Delete a customer; False when missing or referenced by any order."""
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    DELETE FROM customers
                    WHERE id = ?
                      AND NOT EXISTS (
                          SELECT 1 FROM orders WHERE orders.customer_id = customers.id
                      )
                    """,
                    (customer_id,),
                )
        except Exception:
            self._logger.exception("Failed to delete customer id=%s", customer_id)
            raise
        return cursor.rowcount > 0

    def list_all(self) -> List[Customer]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM customers ORDER BY name, id"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list customers")
            raise
        return [customer_from_row(row) for row in rows]

    def search(self, term: str) -> List[Customer]:
        """Match ``term`` against name, phone or email."""
        term = term.strip()
        if not term:
            return self.list_all()
        pattern = f"%{term}%"
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM customers
                WHERE name LIKE ? OR phone LIKE ? OR email LIKE ?
                ORDER BY name, id
                """,
                (pattern, pattern, pattern),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to search customers term=%s", term)
            raise
        return [customer_from_row(row) for row in rows]

    def count_open_orders(self, customer_id: int) -> int:
        """Orders of the customer that still hold or have out stock."""
        statuses = [status.value for status in COMMITTED_ORDER_STATUSES]
        placeholders = ", ".join(["?"] * len(statuses))
        try:
            row = self._connection.execute(
                f"""
                SELECT COUNT(*)
                FROM orders
                WHERE customer_id = ?
                  AND status IN ({placeholders})
                """,
                (customer_id, *statuses),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to count orders customer id=%s", customer_id)
            raise
        return int(row[0])

    def get_by_id(self, customer_id: int) -> Optional[Customer]:
        try:
            row = self._connection.execute(
                "SELECT * FROM customers WHERE id = ?",
                (customer_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get customer id=%s", customer_id)
            raise
        return customer_from_row(row) if row else None
