"""SQLite row mappers for domain models."""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from rental_inventory.domain.models import (
    Customer,
    DeviceSerial,
    InventoryAction,
    InventoryLogEntry,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    SerialStatus,
    StockBucket,
    StockRecord,
    Supplier,
    Warehouse,
)


def _row_value(row: sqlite3.Row, key: str) -> Any:
    return row[key] if key in row.keys() else None


def _bucket_or_none(raw: Optional[str]) -> Optional[StockBucket]:
    return StockBucket(raw) if raw else None


def product_from_row(row: sqlite3.Row) -> Product:
    return Product(
        id=_row_value(row, "id"),
        code=row["code"],
        name=row["name"],
        category=_row_value(row, "category"),
        price_per_day=float(_row_value(row, "price_per_day") or 0.0),
        total_owned=int(row["total_owned"]),
        is_serialized=bool(_row_value(row, "is_serialized") or 0),
        active=bool(row["active"]),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def product_to_record(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "code": product.code,
        "name": product.name,
        "category": product.category,
        "price_per_day": product.price_per_day,
        "total_owned": product.total_owned,
        "is_serialized": int(product.is_serialized),
        "active": int(product.active),
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def warehouse_from_row(row: sqlite3.Row) -> Warehouse:
    return Warehouse(
        id=_row_value(row, "id"),
        name=row["name"],
        address=_row_value(row, "address"),
    )


def customer_from_row(row: sqlite3.Row) -> Customer:
    return Customer(
        id=_row_value(row, "id"),
        name=row["name"],
        phone=_row_value(row, "phone"),
        email=_row_value(row, "email"),
        notes=_row_value(row, "notes"),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def supplier_from_row(row: sqlite3.Row) -> Supplier:
    return Supplier(
        id=_row_value(row, "id"),
        name=row["name"],
        contact=_row_value(row, "contact"),
    )


def stock_from_row(row: sqlite3.Row) -> StockRecord:
    return StockRecord(
        id=_row_value(row, "id"),
        product_id=row["product_id"],
        warehouse_id=_row_value(row, "warehouse_id"),
        available=int(row["available_qty"] or 0),
        reserved=int(row["reserved_qty"] or 0),
        on_rent=int(row["on_rent_qty"] or 0),
        dirty=int(row["dirty_qty"] or 0),
        broken=int(row["broken_qty"] or 0),
    )


def serial_from_row(row: sqlite3.Row) -> DeviceSerial:
    return DeviceSerial(
        id=_row_value(row, "id"),
        product_id=row["product_id"],
        serial_number=row["serial_number"],
        warehouse_id=row["warehouse_id"],
        status=SerialStatus(row["status"]),
        order_id=_row_value(row, "order_id"),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def order_from_row(row: sqlite3.Row) -> Order:
    return Order(
        id=_row_value(row, "id"),
        customer_id=row["customer_id"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        status=OrderStatus(row["status"]),
        total_amount=float(row["total_amount"] or 0.0),
        actual_return_date=_row_value(row, "actual_return_date"),
        note=_row_value(row, "note"),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def order_to_record(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "customer_id": order.customer_id,
        "start_date": order.start_date,
        "end_date": order.end_date,
        "status": order.status.value,
        "total_amount": order.total_amount,
        "actual_return_date": order.actual_return_date,
        "note": order.note,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def order_item_from_row(row: sqlite3.Row) -> OrderItem:
    cost_price = _row_value(row, "cost_price")
    return OrderItem(
        id=_row_value(row, "id"),
        order_id=row["order_id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        is_external=bool(row["is_external"]),
        supplier_id=_row_value(row, "supplier_id"),
        cost_price=float(cost_price) if cost_price is not None else None,
        exported_quantity=int(row["exported_quantity"] or 0),
        returned_quantity=int(row["returned_quantity"] or 0),
        reserved_quantity=int(_row_value(row, "reserved_quantity") or 0),
    )


def order_item_to_record(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "is_external": int(item.is_external),
        "supplier_id": item.supplier_id,
        "cost_price": item.cost_price,
        "exported_quantity": item.exported_quantity,
        "returned_quantity": item.returned_quantity,
        "reserved_quantity": item.reserved_quantity,
    }


def log_entry_from_row(row: sqlite3.Row) -> InventoryLogEntry:
    return InventoryLogEntry(
        id=_row_value(row, "id"),
        product_id=row["product_id"],
        action=InventoryAction(row["action"]),
        quantity=int(row["quantity"]),
        timestamp=row["timestamp"],
        warehouse_id=_row_value(row, "warehouse_id"),
        order_id=_row_value(row, "order_id"),
        from_bucket=_bucket_or_none(_row_value(row, "from_bucket")),
        to_bucket=_bucket_or_none(_row_value(row, "to_bucket")),
        note=_row_value(row, "note"),
    )
