"""Repository helpers for order persistence."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import (
    COMMITTED_ORDER_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
)
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.mappers import order_from_row, order_item_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _coerce_status(status: str | OrderStatus) -> OrderStatus:
    if isinstance(status, OrderStatus):
        return status
    return OrderStatus(str(status).lower())


def _committed_placeholders() -> tuple[str, list[str]]:
    values = [status.value for status in COMMITTED_ORDER_STATUSES]
    return ", ".join(["?"] * len(values)), values


@contextmanager
def _bound_connection(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    connection.row_factory = sqlite3.Row
    yield connection


def _insert_items(
    conn: sqlite3.Connection,
    order_id: int,
    items: Iterable[dict[str, object]],
) -> list[OrderItem]:
    saved: list[OrderItem] = []
    for item in items:
        raw_supplier = item.get("supplier_id")
        raw_cost = item.get("cost_price")
        supplier_id = int(raw_supplier) if raw_supplier is not None else None
        cost_price = float(raw_cost) if raw_cost is not None else None
        cursor = conn.execute(
            """
            INSERT INTO order_items (
                order_id,
                product_id,
                quantity,
                is_external,
                supplier_id,
                cost_price,
                exported_quantity,
                returned_quantity,
                reserved_quantity
            )
            VALUES (?, ?, ?, ?, ?, ?, 0, 0, 0)
            """,
            (
                order_id,
                int(item["product_id"]),
                int(item["quantity"]),
                int(bool(item.get("is_external"))),
                supplier_id,
                cost_price,
            ),
        )
        saved.append(
            OrderItem(
                id=cursor.lastrowid,
                order_id=order_id,
                product_id=int(item["product_id"]),
                quantity=int(item["quantity"]),
                is_external=bool(item.get("is_external")),
                supplier_id=supplier_id,
                cost_price=cost_price,
            )
        )
    return saved


def create_order(
    customer_id: int,
    start_date: str,
    end_date: str,
    items: Iterable[dict[str, object]],
    total_amount: float = 0.0,
    status: str | OrderStatus = OrderStatus.BOOKED,
    note: Optional[str] = None,
    *,
    connection: sqlite3.Connection,
) -> tuple[Order, list[OrderItem]]:
    """Create an order and its items in a transaction."""
    logger = get_logger("order_repo")
    created_at = _now_iso()
    order_status = _coerce_status(status)
    try:
        with _bound_connection(connection) as conn:
            with transaction(conn):
                cursor = conn.execute(
                    """
                    INSERT INTO orders (
                        customer_id,
                        start_date,
                        end_date,
                        status,
                        total_amount,
                        note,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        customer_id,
                        start_date,
                        end_date,
                        order_status.value,
                        float(total_amount),
                        note,
                        created_at,
                        created_at,
                    ),
                )
                order_id = int(cursor.lastrowid)
                saved_items = _insert_items(conn, order_id, items)
    except Exception:
        logger.exception("Failed to create order")
        raise

    order = Order(
        id=order_id,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        status=order_status,
        total_amount=float(total_amount),
        note=note,
        created_at=created_at,
        updated_at=created_at,
    )
    return order, saved_items


def replace_order(
    order_id: int,
    customer_id: int,
    start_date: str,
    end_date: str,
    items: Iterable[dict[str, object]],
    total_amount: float,
    note: Optional[str],
    *,
    connection: sqlite3.Connection,
) -> bool:
    """Update order header fields and replace its items in a transaction."""
    logger = get_logger("order_repo")
    updated_at = _now_iso()
    try:
        with _bound_connection(connection) as conn:
            with transaction(conn):
                cursor = conn.execute(
                    """
                    UPDATE orders
                    SET
                        customer_id = ?,
                        start_date = ?,
                        end_date = ?,
                        total_amount = ?,
                        note = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        customer_id,
                        start_date,
                        end_date,
                        float(total_amount),
                        note,
                        updated_at,
                        order_id,
                    ),
                )
                if cursor.rowcount == 0:
                    return False
                conn.execute("DELETE FROM order_items WHERE order_id = ?", (order_id,))
                _insert_items(conn, order_id, items)
    except Exception:
        logger.exception("Failed to update order id=%s", order_id)
        raise
    return True


def get_order(
    order_id: int,
    *,
    connection: sqlite3.Connection,
) -> Optional[Order]:
    logger = get_logger("order_repo")
    try:
        with _bound_connection(connection) as conn:
            row = conn.execute(
                "SELECT * FROM orders WHERE id = ?",
                (order_id,),
            ).fetchone()
    except Exception:
        logger.exception("Failed to fetch order id=%s", order_id)
        raise
    return order_from_row(row) if row else None


def list_items(
    order_id: int,
    *,
    connection: sqlite3.Connection,
) -> list[OrderItem]:
    logger = get_logger("order_repo")
    try:
        with _bound_connection(connection) as conn:
            rows = conn.execute(
                "SELECT * FROM order_items WHERE order_id = ? ORDER BY id",
                (order_id,),
            ).fetchall()
    except Exception:
        logger.exception("Failed to list items for order id=%s", order_id)
        raise
    return [order_item_from_row(row) for row in rows]


def get_order_with_items(
    order_id: int,
    *,
    connection: sqlite3.Connection,
) -> Optional[tuple[Order, list[OrderItem]]]:
    """Return an order with its items."""
    with _bound_connection(connection) as conn:
        order = get_order(order_id, connection=conn)
        if order is None:
            return None
        return order, list_items(order_id, connection=conn)


def list_orders(
    status: Optional[str | OrderStatus] = None,
    *,
    connection: sqlite3.Connection,
) -> list[Order]:
    logger = get_logger("order_repo")
    params: list[object] = []
    where = ""
    if status is not None:
        where = "WHERE status = ?"
        params.append(_coerce_status(status).value)
    try:
        with _bound_connection(connection) as conn:
            rows = conn.execute(
                f"SELECT * FROM orders {where} ORDER BY start_date, id",
                params,
            ).fetchall()
    except Exception:
        logger.exception("Failed to list orders")
        raise
    return [order_from_row(row) for row in rows]


def set_status(
    order_id: int,
    status: str | OrderStatus,
    *,
    connection: sqlite3.Connection,
) -> bool:
    """Update order status."""
    logger = get_logger("order_repo")
    updated_at = _now_iso()
    order_status = _coerce_status(status)
    try:
        with _bound_connection(connection) as conn:
            with transaction(conn):
                cursor = conn.execute(
                    """
                    UPDATE orders
                    SET status = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (order_status.value, updated_at, order_id),
                )
    except Exception:
        logger.exception("Failed to update order status id=%s", order_id)
        raise
    return cursor.rowcount > 0


def mark_completed(
    order_id: int,
    actual_return_date: str,
    *,
    connection: sqlite3.Connection,
) -> bool:
    """Set status COMPLETED and stamp the actual return date."""
    logger = get_logger("order_repo")
    try:
        with _bound_connection(connection) as conn:
            with transaction(conn):
                cursor = conn.execute(
                    """
                    UPDATE orders
                    SET status = ?,
                        actual_return_date = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        OrderStatus.COMPLETED.value,
                        actual_return_date,
                        actual_return_date,
                        order_id,
                    ),
                )
    except Exception:
        logger.exception("Failed to complete order id=%s", order_id)
        raise
    return cursor.rowcount > 0


def add_item_quantities(
    item_id: int,
    *,
    exported: int = 0,
    returned: int = 0,
    reserved: int = 0,
    connection: sqlite3.Connection,
) -> bool:
    """Apply deltas to an item's cumulative exported/returned/reserved counts."""
    logger = get_logger("order_repo")
    try:
        with _bound_connection(connection) as conn:
            with transaction(conn):
                cursor = conn.execute(
                    """
                    UPDATE order_items
                    SET exported_quantity = exported_quantity + ?,
                        returned_quantity = returned_quantity + ?,
                        reserved_quantity = reserved_quantity + ?
                    WHERE id = ?
                    """,
                    (exported, returned, reserved, item_id),
                )
    except Exception:
        logger.exception("Failed to update quantities for item id=%s", item_id)
        raise
    return cursor.rowcount > 0


def delete_order(
    order_id: int,
    *,
    connection: sqlite3.Connection,
) -> bool:
    """Delete an order; its items go with it."""
    logger = get_logger("order_repo")
    try:
        with _bound_connection(connection) as conn:
            with transaction(conn):
                cursor = conn.execute("DELETE FROM orders WHERE id = ?", (order_id,))
    except Exception:
        logger.exception("Failed to delete order id=%s", order_id)
        raise
    return cursor.rowcount > 0


def list_committed_demand(
    product_id: int,
    start_date: str,
    end_date: str,
    exclude_order_id: Optional[int] = None,
    *,
    connection: sqlite3.Connection,
) -> list[tuple[str, str, int]]:
    """Return (start, end, quantity) of stock-backed lines overlapping a range.

    Ranges are inclusive on both ends, so an order overlaps when it starts on
    or before ``end_date`` and ends on or after ``start_date``.
    """
    logger = get_logger("order_repo")
    placeholders, statuses = _committed_placeholders()
    params: list[object] = [product_id, *statuses, end_date, start_date]
    exclude_clause = ""
    if exclude_order_id is not None:
        exclude_clause = "AND o.id <> ?"
        params.append(exclude_order_id)
    try:
        with _bound_connection(connection) as conn:
            rows = conn.execute(
                f"""
                SELECT o.start_date, o.end_date, oi.quantity
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                WHERE oi.product_id = ?
                  AND oi.is_external = 0
                  AND o.status IN ({placeholders})
                  AND o.start_date <= ?
                  AND o.end_date >= ?
                  {exclude_clause}
                """,
                params,
            ).fetchall()
    except Exception:
        logger.exception("Failed to fetch committed demand product_id=%s", product_id)
        raise
    return [(row["start_date"], row["end_date"], int(row["quantity"])) for row in rows]


def list_open_lines(
    product_id: Optional[int] = None,
    *,
    statuses: Iterable[OrderStatus] = COMMITTED_ORDER_STATUSES,
    connection: sqlite3.Connection,
) -> list[sqlite3.Row]:
    """Return stock-backed lines of open orders joined with display names."""
    logger = get_logger("order_repo")
    status_values = [status.value for status in statuses]
    placeholders = ", ".join(["?"] * len(status_values))
    params: list[object] = [*status_values]
    product_clause = ""
    if product_id is not None:
        product_clause = "AND oi.product_id = ?"
        params.append(product_id)
    try:
        with _bound_connection(connection) as conn:
            return conn.execute(
                f"""
                SELECT
                    o.id AS order_id,
                    o.status,
                    o.start_date,
                    o.end_date,
                    c.name AS customer_name,
                    oi.id AS item_id,
                    oi.product_id,
                    p.name AS product_name,
                    oi.quantity,
                    oi.exported_quantity,
                    oi.returned_quantity,
                    oi.reserved_quantity
                FROM orders o
                JOIN customers c ON c.id = o.customer_id
                JOIN order_items oi ON oi.order_id = o.id
                JOIN products p ON p.id = oi.product_id
                WHERE o.status IN ({placeholders})
                  AND oi.is_external = 0
                  {product_clause}
                ORDER BY o.start_date, o.id, oi.id
                """,
                params,
            ).fetchall()
    except Exception:
        logger.exception("Failed to list open order lines")
        raise
