from __future__ import annotations

import itertools

import pytest

from rental_inventory.db.connection import get_connection
from rental_inventory.db.migrations import apply_migrations
from rental_inventory.services.container import build_services


@pytest.fixture
def connection():
    conn = get_connection(":memory:")
    apply_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def services(connection):
    return build_services(connection)


@pytest.fixture
def warehouse(services):
    return services.warehouse_service.create_warehouse("Main depot")


@pytest.fixture
def customer(services):
    return services.customer_repo.create(name="Acme Events", phone="555-0100")


@pytest.fixture
def make_product(services, warehouse):
    counter = itertools.count(1)

    def _make(quantity: int = 10, *, serialized: bool = False, name: str | None = None):
        number = next(counter)
        return services.product_service.create_product(
            f"P{number:03d}",
            name or f"Speaker {number}",
            "audio",
            25.0,
            is_serialized=serialized,
            initial_quantity=0 if serialized else quantity,
            warehouse_id=warehouse.id,
        )

    return _make


@pytest.fixture
def book(services, customer):
    def _book(lines, start: str = "2030-01-10", end: str = "2030-01-12", external=()):
        items = [
            {"product_id": product_id, "quantity": quantity}
            for product_id, quantity in lines
        ]
        items.extend(
            {"product_id": product_id, "quantity": quantity, "is_external": True}
            for product_id, quantity in external
        )
        return services.order_service.create_order(customer.id, start, end, items)

    return _book


@pytest.fixture
def totals(services):
    def _totals(product_id: int) -> dict[str, int]:
        return services.ledger_service.get_totals(product_id).as_dict()

    return _totals
