"""Database migrations for SQLite schema versioning."""

from __future__ import annotations

from dataclasses import dataclass
import sqlite3

from rental_inventory.db.connection import transaction


@dataclass(frozen=True)
class Migration:
    version: int
    script: str
    requires_foreign_keys_off: bool = False


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        script="""
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            category TEXT,
            price_per_day REAL NOT NULL DEFAULT 0 CHECK (price_per_day >= 0),
            total_owned INTEGER NOT NULL DEFAULT 0 CHECK (total_owned >= 0),
            is_serialized INTEGER NOT NULL DEFAULT 0,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT,
            updated_at TEXT
        );

        CREATE TABLE IF NOT EXISTS warehouses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            address TEXT
        );

        CREATE TABLE IF NOT EXISTS stocks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL,
            warehouse_id INTEGER NOT NULL,
            available_qty INTEGER NOT NULL DEFAULT 0 CHECK (available_qty >= 0),
            reserved_qty INTEGER NOT NULL DEFAULT 0 CHECK (reserved_qty >= 0),
            on_rent_qty INTEGER NOT NULL DEFAULT 0 CHECK (on_rent_qty >= 0),
            dirty_qty INTEGER NOT NULL DEFAULT 0 CHECK (dirty_qty >= 0),
            broken_qty INTEGER NOT NULL DEFAULT 0 CHECK (broken_qty >= 0),
            FOREIGN KEY (product_id) REFERENCES products(id),
            FOREIGN KEY (warehouse_id) REFERENCES warehouses(id),
            UNIQUE (product_id, warehouse_id)
        );

        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            phone TEXT,
            email TEXT,
            notes TEXT,
            created_at TEXT,
            updated_at TEXT
        );

        CREATE TABLE IF NOT EXISTS suppliers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            contact TEXT
        );

        CREATE TABLE IF NOT EXISTS orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_id INTEGER NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            actual_return_date TEXT,
            status TEXT NOT NULL CHECK (
                status IN ('draft', 'booked', 'active', 'completed', 'cancelled')
            ),
            total_amount REAL NOT NULL DEFAULT 0 CHECK (total_amount >= 0),
            note TEXT,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (customer_id) REFERENCES customers(id),
            CHECK (end_date >= start_date)
        );

        CREATE TABLE IF NOT EXISTS order_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            order_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            is_external INTEGER NOT NULL DEFAULT 0,
            supplier_id INTEGER,
            cost_price REAL,
            exported_quantity INTEGER NOT NULL DEFAULT 0 CHECK (exported_quantity >= 0),
            returned_quantity INTEGER NOT NULL DEFAULT 0 CHECK (returned_quantity >= 0),
            reserved_quantity INTEGER NOT NULL DEFAULT 0 CHECK (reserved_quantity >= 0),
            FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE,
            FOREIGN KEY (product_id) REFERENCES products(id),
            FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
        );

        CREATE TABLE IF NOT EXISTS device_serials (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL,
            serial_number TEXT NOT NULL,
            warehouse_id INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'available' CHECK (
                status IN ('available', 'reserved', 'on_rent', 'dirty', 'broken')
            ),
            order_id INTEGER,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (product_id) REFERENCES products(id),
            FOREIGN KEY (warehouse_id) REFERENCES warehouses(id),
            FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE SET NULL,
            UNIQUE (product_id, serial_number)
        );

        CREATE TABLE IF NOT EXISTS inventory_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL,
            warehouse_id INTEGER,
            order_id INTEGER,
            action TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            from_bucket TEXT,
            to_bucket TEXT,
            timestamp TEXT NOT NULL,
            note TEXT,
            FOREIGN KEY (product_id) REFERENCES products(id)
        );

        CREATE TRIGGER IF NOT EXISTS trg_inventory_logs_no_update
            BEFORE UPDATE ON inventory_logs
        BEGIN
            SELECT RAISE(ABORT, 'inventory_logs is append-only');
        END;

        CREATE TRIGGER IF NOT EXISTS trg_inventory_logs_no_delete
            BEFORE DELETE ON inventory_logs
        BEGIN
            SELECT RAISE(ABORT, 'inventory_logs is append-only');
        END;

        CREATE INDEX IF NOT EXISTS idx_orders_status
            ON orders(status);
        CREATE INDEX IF NOT EXISTS idx_orders_dates
            ON orders(start_date, end_date);
        CREATE INDEX IF NOT EXISTS idx_order_items_order_id
            ON order_items(order_id);
        CREATE INDEX IF NOT EXISTS idx_order_items_product_id
            ON order_items(product_id);
        CREATE INDEX IF NOT EXISTS idx_device_serials_product_status
            ON device_serials(product_id, warehouse_id, status);
        CREATE INDEX IF NOT EXISTS idx_device_serials_order_id
            ON device_serials(order_id);
        CREATE INDEX IF NOT EXISTS idx_inventory_logs_product_timestamp
            ON inventory_logs(product_id, timestamp);
        CREATE INDEX IF NOT EXISTS idx_inventory_logs_order_id
            ON inventory_logs(order_id);
        """,
    ),
]


def _fetch_schema_version(connection: sqlite3.Connection) -> int:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS app_meta (
            schema_version INTEGER NOT NULL
        );
        """
    )
    row = connection.execute(
        "SELECT schema_version FROM app_meta LIMIT 1"
    ).fetchone()
    if row is None:
        connection.execute("INSERT INTO app_meta (schema_version) VALUES (0)")
        return 0
    return int(row[0])


def get_schema_version(connection: sqlite3.Connection) -> int:
    """Return the applied schema version without changing it."""
    with transaction(connection):
        return _fetch_schema_version(connection)


def apply_migrations(connection: sqlite3.Connection) -> None:
    """Apply pending database migrations."""
    current_version = get_schema_version(connection)

    for migration in MIGRATIONS:
        if migration.version <= current_version:
            continue

        if migration.requires_foreign_keys_off:
            connection.execute("PRAGMA foreign_keys = OFF;")

        with transaction(connection):
            connection.executescript(migration.script)
            connection.execute(
                "UPDATE app_meta SET schema_version = ?",
                (migration.version,),
            )

        if migration.requires_foreign_keys_off:
            connection.execute("PRAGMA foreign_keys = ON;")

        current_version = migration.version
