import pytest

from rental_inventory.domain.models import InventoryAction, OrderStatus
from rental_inventory.services.errors import (
    InsufficientStockError,
    InvalidOrderStateError,
    LedgerInconsistencyError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)


def _item(services, order_id, product_id):
    _, items = services.order_service.get_order(order_id)
    return next(item for item in items if item.product_id == product_id)


def test_create_order_books_with_zero_counters(services, make_product, book):
    product = make_product(quantity=5)

    order, items = book([(product.id, 2)])

    assert order.status == OrderStatus.BOOKED
    assert [(item.quantity, item.exported_quantity, item.returned_quantity) for item in items] == [
        (2, 0, 0)
    ]


def test_create_order_is_all_or_nothing(services, make_product, book):
    enough = make_product(quantity=5, name="Mixer")
    short = make_product(quantity=1, name="Subwoofer")

    with pytest.raises(InsufficientStockError) as excinfo:
        book([(enough.id, 2), (short.id, 3)])

    assert excinfo.value.product_id == short.id
    assert excinfo.value.requested == 3
    assert excinfo.value.available == 1
    assert "Subwoofer" in str(excinfo.value)
    assert services.order_service.list_orders() == []


def test_create_order_validates_payload(services, make_product, customer):
    product = make_product()

    with pytest.raises(ValidationError):
        services.order_service.create_order(customer.id, "2030-01-01", "2030-01-02", [])
    with pytest.raises(ValidationError):
        services.order_service.create_order(
            customer.id, "2030-01-01", "2030-01-02", [{"product_id": product.id, "quantity": 0}]
        )
    with pytest.raises(NotFoundError):
        services.order_service.create_order(
            999, "2030-01-01", "2030-01-02", [{"product_id": product.id, "quantity": 1}]
        )


def test_prepare_reserves_units(services, make_product, book, totals):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 3)])

    services.order_service.prepare(order.id, product.id, quantity=2)

    assert totals(product.id)["available"] == 3
    assert totals(product.id)["reserved"] == 2
    assert _item(services, order.id, product.id).reserved_quantity == 2
    entries = services.audit_log_service.list_entries(
        order_id=order.id, action=InventoryAction.PREPARE
    )
    assert [entry.quantity for entry in entries] == [2]
    order_after, _ = services.order_service.get_order(order.id)
    assert order_after.status == OrderStatus.BOOKED


def test_prepare_more_than_ordered_is_rejected(services, make_product, book):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 2)])
    services.order_service.prepare(order.id, product.id, quantity=1)

    with pytest.raises(ValidationError):
        services.order_service.prepare(order.id, product.id, quantity=2)


def test_prepare_short_stock_leaves_nothing_reserved(services, make_product, book, warehouse, totals):
    product = make_product(quantity=3)
    order, _ = book([(product.id, 3)])
    services.warehouse_service.report_damage(product.id, 2, warehouse_id=warehouse.id)

    with pytest.raises(InsufficientStockError):
        services.order_service.prepare(order.id, product.id, quantity=3)

    assert totals(product.id)["reserved"] == 0
    assert _item(services, order.id, product.id).reserved_quantity == 0


def test_prepare_product_not_on_order(services, make_product, book):
    ordered = make_product(quantity=3)
    other = make_product(quantity=3)
    order, _ = book([(ordered.id, 1)])

    with pytest.raises(NotFoundError):
        services.order_service.prepare(order.id, other.id, quantity=1)


def test_ship_uses_reserved_before_available(services, make_product, book, totals):
    product = make_product(quantity=10)
    order, _ = book([(product.id, 5)])
    services.order_service.prepare(order.id, product.id, quantity=2)

    shipped, items = services.order_service.ship(order.id)

    assert shipped.status == OrderStatus.ACTIVE
    assert items[0].exported_quantity == 5
    assert items[0].reserved_quantity == 0
    assert totals(product.id) == {
        "available": 5,
        "reserved": 0,
        "on_rent": 5,
        "dirty": 0,
        "broken": 0,
    }
    services.ledger_service.verify_conservation(product.id)


def test_ship_subset_of_items(services, make_product, book):
    first = make_product(quantity=5)
    second = make_product(quantity=5)
    order, items = book([(first.id, 2), (second.id, 2)])

    services.order_service.ship(order.id, {items[0].id: 1})

    assert _item(services, order.id, first.id).exported_quantity == 1
    assert _item(services, order.id, second.id).exported_quantity == 0
    with pytest.raises(ValidationError):
        services.order_service.ship(order.id, {items[0].id: 2})


def test_ship_nothing_keeps_order_booked(services, make_product, book):
    product = make_product(quantity=5)
    order, items = book([(product.id, 2)])

    shipped, _ = services.order_service.ship(order.id, {items[0].id: 0})

    assert shipped.status == OrderStatus.BOOKED


def test_ship_reports_reserved_and_available_when_short(services, make_product, book, warehouse):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 4)])
    services.order_service.prepare(order.id, product.id, quantity=1)
    services.warehouse_service.report_damage(product.id, 2, warehouse_id=warehouse.id)

    with pytest.raises(InsufficientStockError) as excinfo:
        services.order_service.ship(order.id)

    assert excinfo.value.requested == 4
    assert excinfo.value.reserved == 1
    assert excinfo.value.available == 1
    assert excinfo.value.shortfall == 2


def test_ship_failure_on_second_item_rolls_back_first(services, make_product, book, warehouse, totals):
    first = make_product(quantity=5)
    second = make_product(quantity=2)
    order, _ = book([(first.id, 3), (second.id, 2)])
    services.warehouse_service.report_damage(second.id, 1, warehouse_id=warehouse.id)

    with pytest.raises(InsufficientStockError):
        services.order_service.ship(order.id)

    assert totals(first.id)["available"] == 5
    assert totals(first.id)["on_rent"] == 0
    assert _item(services, order.id, first.id).exported_quantity == 0
    assert services.order_service.get_order(order.id)[0].status == OrderStatus.BOOKED
    assert services.audit_log_service.list_entries(action=InventoryAction.EXPORT) == []


def test_partial_return_keeps_order_active(services, make_product, book, totals):
    product = make_product(quantity=5)
    order, items = book([(product.id, 4)])
    services.order_service.ship(order.id)

    returned, items = services.order_service.return_items(order.id, {items[0].id: 1})

    assert returned.status == OrderStatus.ACTIVE
    assert items[0].returned_quantity == 1
    assert totals(product.id)["on_rent"] == 3
    assert totals(product.id)["dirty"] == 1


def test_order_completes_only_when_every_item_is_back(services, make_product, book):
    first = make_product(quantity=5)
    second = make_product(quantity=5)
    order, items = book([(first.id, 2), (second.id, 3)])
    services.order_service.ship(order.id)

    after_first, _ = services.order_service.return_items(order.id, {items[0].id: 2})
    assert after_first.status == OrderStatus.ACTIVE
    assert after_first.actual_return_date is None

    after_second, _ = services.order_service.return_items(order.id, {items[1].id: 3})
    assert after_second.status == OrderStatus.COMPLETED
    assert after_second.actual_return_date is not None


def test_return_without_export_is_auto_adjusted(services, make_product, book, totals):
    product = make_product(quantity=10)
    order, items = book([(product.id, 5)])

    returned, items = services.order_service.return_items(order.id, {items[0].id: 3})

    assert (items[0].exported_quantity, items[0].returned_quantity) == (3, 3)
    adjustments = services.audit_log_service.list_adjustments(product.id)
    assert [(entry.quantity, entry.order_id) for entry in adjustments] == [(3, order.id)]
    assert totals(product.id) == {
        "available": 7,
        "reserved": 0,
        "on_rent": 0,
        "dirty": 3,
        "broken": 0,
    }
    assert returned.status == OrderStatus.ACTIVE
    services.ledger_service.verify_conservation(product.id)


def test_auto_adjust_takes_the_order_reservation_first(services, make_product, book, totals):
    product = make_product(quantity=10)
    order, items = book([(product.id, 5)])
    services.order_service.prepare(order.id, product.id, quantity=2)

    _, items = services.order_service.return_items(order.id, {items[0].id: 3})

    assert items[0].reserved_quantity == 0
    assert totals(product.id)["reserved"] == 0
    assert totals(product.id)["available"] == 7
    assert sum(entry.quantity for entry in services.audit_log_service.list_adjustments()) == 3


def test_auto_adjust_after_partial_shipment(services, make_product, book, totals):
    product = make_product(quantity=10)
    order, items = book([(product.id, 4)])
    services.order_service.ship(order.id, {items[0].id: 1})

    completed, items = services.order_service.return_items(order.id)

    assert completed.status == OrderStatus.COMPLETED
    assert (items[0].exported_quantity, items[0].returned_quantity) == (4, 4)
    assert [entry.quantity for entry in services.audit_log_service.list_adjustments()] == [3]
    assert totals(product.id)["dirty"] == 4


def test_auto_adjust_without_stock_is_a_ledger_inconsistency(services, make_product, book, warehouse, totals):
    product = make_product(quantity=2)
    order, items = book([(product.id, 2)])
    services.warehouse_service.report_damage(product.id, 2, warehouse_id=warehouse.id)

    with pytest.raises(LedgerInconsistencyError):
        services.order_service.return_items(order.id)

    assert totals(product.id)["broken"] == 2
    assert _item(services, order.id, product.id).returned_quantity == 0


def test_returning_more_than_ordered_is_rejected(services, make_product, book):
    product = make_product(quantity=5)
    order, items = book([(product.id, 2)])
    services.order_service.ship(order.id)

    with pytest.raises(ValidationError):
        services.order_service.return_items(order.id, {items[0].id: 3})


def test_return_on_completed_order_is_rejected(services, make_product, book):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 2)])
    services.order_service.ship(order.id)
    services.order_service.return_items(order.id)

    with pytest.raises(InvalidOrderStateError):
        services.order_service.return_items(order.id)


def test_external_items_move_counters_without_stock(services, make_product, book, totals):
    product = make_product(quantity=1)
    order, items = book([(product.id, 1)], external=[(product.id, 4)])

    services.order_service.ship(order.id)
    assert totals(product.id)["on_rent"] == 1
    completed, items = services.order_service.return_items(order.id)

    assert completed.status == OrderStatus.COMPLETED
    external = next(item for item in items if item.is_external)
    assert (external.exported_quantity, external.returned_quantity) == (4, 4)
    assert totals(product.id)["dirty"] == 1


def test_force_complete_brings_outstanding_units_back_dirty(services, make_product, book, totals):
    product = make_product(quantity=5)
    order, items = book([(product.id, 5)])
    services.order_service.ship(order.id)
    services.order_service.return_items(order.id, {items[0].id: 2})

    completed, items = services.order_service.force_complete(order.id)

    assert completed.status == OrderStatus.COMPLETED
    assert completed.actual_return_date is not None
    assert items[0].returned_quantity == 5
    assert totals(product.id)["on_rent"] == 0
    assert totals(product.id)["dirty"] == 5
    services.ledger_service.verify_conservation(product.id)


def test_force_complete_releases_unshipped_reservations(services, make_product, book, totals):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 3)])
    services.order_service.prepare(order.id, product.id, quantity=3)

    _, items = services.order_service.force_complete(order.id)

    assert items[0].reserved_quantity == 0
    assert totals(product.id)["available"] == 5
    assert totals(product.id)["reserved"] == 0
    releases = services.audit_log_service.list_entries(action=InventoryAction.RELEASE)
    assert [entry.quantity for entry in releases] == [3]


def test_force_complete_is_idempotent_and_reports_missing_orders(services, make_product, book):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 1)])
    services.order_service.force_complete(order.id)

    again, _ = services.order_service.force_complete(order.id)

    assert again.status == OrderStatus.COMPLETED
    with pytest.raises(OrderNotFoundError):
        services.order_service.force_complete(12345)


def test_cancel_releases_reservations(services, make_product, book, totals):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 3)])
    services.order_service.prepare(order.id, product.id, quantity=2)

    cancelled = services.order_service.cancel_order(order.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert totals(product.id)["available"] == 5


def test_cancel_after_shipping_is_rejected(services, make_product, book):
    product = make_product(quantity=5)
    order, _ = book([(product.id, 1)])
    services.order_service.ship(order.id)

    with pytest.raises(InvalidOrderStateError):
        services.order_service.cancel_order(order.id)


def test_update_order_rechecks_without_its_own_demand(services, make_product, book, customer):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 4)])

    updated, items = services.order_service.update_order(
        order.id,
        customer.id,
        "2030-01-11",
        "2030-01-14",
        [{"product_id": product.id, "quantity": 4}],
        total_amount=300.0,
        note="moved one day",
    )

    assert (updated.start_date, updated.end_date) == ("2030-01-11", "2030-01-14")
    assert updated.total_amount == 300.0
    assert items[0].quantity == 4


def test_update_order_after_prepare_is_rejected(services, make_product, book, customer):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 2)])
    services.order_service.prepare(order.id, product.id, quantity=1)

    with pytest.raises(InvalidOrderStateError):
        services.order_service.update_order(
            order.id, customer.id, "2030-01-10", "2030-01-12",
            [{"product_id": product.id, "quantity": 1}],
        )


def test_delete_order_removes_items(services, connection, make_product, book):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 2)])

    services.order_service.delete_order(order.id)

    with pytest.raises(OrderNotFoundError):
        services.order_service.get_order(order.id)
    count = connection.execute("SELECT COUNT(*) FROM order_items").fetchone()[0]
    assert count == 0


def test_status_patch_rejects_unknown_values(services, make_product, book):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 2)])

    with pytest.raises(ValidationError):
        services.order_service.set_status(order.id, "shipped")


def test_status_patch_to_completed_reconciles_the_ledger(services, make_product, book, totals):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 2)])
    services.order_service.ship(order.id)

    patched = services.order_service.set_status(order.id, "COMPLETED")

    assert patched.status == OrderStatus.COMPLETED
    assert totals(product.id)["on_rent"] == 0
    assert totals(product.id)["dirty"] == 2
    services.ledger_service.verify_conservation(product.id)


def test_status_patch_refuses_transitions_that_contradict_stock(services, make_product, book):
    product = make_product(quantity=4)
    order, _ = book([(product.id, 2)])

    with pytest.raises(InvalidOrderStateError):
        services.order_service.set_status(order.id, OrderStatus.ACTIVE)

    services.order_service.ship(order.id)
    with pytest.raises(InvalidOrderStateError):
        services.order_service.set_status(order.id, OrderStatus.BOOKED)


def test_status_patch_back_to_booked_rechecks_availability(services, make_product, book):
    product = make_product(quantity=4)
    first, _ = book([(product.id, 4)])
    services.order_service.set_status(first.id, OrderStatus.DRAFT)
    book([(product.id, 4)])

    with pytest.raises(InsufficientStockError):
        services.order_service.set_status(first.id, OrderStatus.BOOKED)
