from datetime import date

import pytest

from rental_inventory.domain.models import OrderStatus, StockBucket
from rental_inventory.services.availability_service import (
    normalize_range,
    parse_date,
    peak_demand,
)
from rental_inventory.services.errors import (
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)


def test_peak_demand_of_disjoint_orders_is_the_largest_single_order():
    commitments = [("2030-01-01", "2030-01-02", 5), ("2030-01-08", "2030-01-09", 5)]

    assert peak_demand(commitments) == 5


def test_peak_demand_counts_chains_of_overlaps():
    commitments = [
        ("2030-01-01", "2030-01-10", 2),
        ("2030-01-05", "2030-01-06", 3),
        ("2030-01-06", "2030-01-08", 4),
    ]

    assert peak_demand(commitments) == 9


def test_peak_demand_treats_end_date_as_occupied():
    assert peak_demand([("2030-01-01", "2030-01-05", 5), ("2030-01-05", "2030-01-07", 5)]) == 10
    assert peak_demand([("2030-01-01", "2030-01-05", 5), ("2030-01-06", "2030-01-07", 5)]) == 5


def test_peak_demand_of_nothing_is_zero():
    assert peak_demand([]) == 0


def test_normalize_range_rejects_reversed_dates():
    with pytest.raises(ValidationError):
        normalize_range("2030-01-05", "2030-01-04")
    assert normalize_range("2030-01-05", "2030-01-05") == ("2030-01-05", "2030-01-05")


def test_normalize_range_rejects_garbage():
    with pytest.raises(ValidationError):
        normalize_range("soon", "2030-01-04")


def test_peak_is_not_the_sum_of_disjoint_orders(services, make_product, book):
    product = make_product(quantity=10)
    book([(product.id, 5)], start="2030-01-01", end="2030-01-02")
    book([(product.id, 5)], start="2030-01-08", end="2030-01-09")

    available = services.availability_service.compute_available(
        product.id, "2030-01-01", "2030-01-09"
    )

    assert available == 5


def test_adjacent_day_boundary(services, make_product, book):
    product = make_product(quantity=5)
    book([(product.id, 5)], start="2030-01-01", end="2030-01-05")

    assert services.availability_service.compute_available(
        product.id, "2030-01-05", "2030-01-05"
    ) == 0
    assert services.availability_service.compute_available(
        product.id, "2030-01-06", "2030-01-08"
    ) == 5
    with pytest.raises(InsufficientStockError):
        book([(product.id, 1)], start="2030-01-05", end="2030-01-07")
    book([(product.id, 5)], start="2030-01-06", end="2030-01-07")


def test_adding_an_overlapping_order_never_increases_availability(services, make_product, book):
    product = make_product(quantity=10)
    book([(product.id, 3)], start="2030-02-01", end="2030-02-10")
    before = services.availability_service.compute_available(
        product.id, "2030-02-05", "2030-02-20"
    )

    book([(product.id, 4)], start="2030-02-08", end="2030-02-15")
    after = services.availability_service.compute_available(
        product.id, "2030-02-05", "2030-02-20"
    )

    assert after <= before
    assert (before, after) == (7, 3)


def test_only_booked_and_active_orders_hold_units(services, make_product, book):
    product = make_product(quantity=4)
    cancelled, _ = book([(product.id, 4)])
    services.order_service.cancel_order(cancelled.id)
    completed, _ = book([(product.id, 4)])
    services.order_service.force_complete(completed.id)
    draft, _ = book([(product.id, 4)])
    services.order_service.set_status(draft.id, OrderStatus.DRAFT)

    assert services.availability_service.compute_available(
        product.id, "2030-01-10", "2030-01-12"
    ) == 4


def test_external_items_do_not_consume_stock(services, make_product, book):
    product = make_product(quantity=2)
    order, items = book([], external=[(product.id, 50)])

    assert items[0].is_external
    assert services.availability_service.compute_available(
        product.id, "2030-01-10", "2030-01-12"
    ) == 2


def test_exclude_order_ignores_its_own_demand(services, make_product, book):
    product = make_product(quantity=6)
    order, _ = book([(product.id, 6)])

    assert services.availability_service.compute_available(
        product.id, "2030-01-10", "2030-01-12", exclude_order_id=order.id
    ) == 6


def test_overbooking_goes_negative_but_single_check_floors(services, make_product, book, warehouse):
    product = make_product(quantity=5)
    book([(product.id, 5)])
    services.warehouse_service.report_damage(product.id, 2, warehouse_id=warehouse.id)

    assert services.availability_service.compute_available(
        product.id, "2030-01-10", "2030-01-12"
    ) == -2
    result = services.availability_service.check_availability(
        product.id, 1, "2030-01-10", "2030-01-12"
    )
    assert result.available == 0
    assert not result.is_enough


def test_broken_units_are_not_usable(services, make_product, warehouse):
    product = make_product(quantity=5)
    services.warehouse_service.report_damage(
        product.id, 1, from_bucket=StockBucket.AVAILABLE, warehouse_id=warehouse.id
    )

    assert services.availability_service.get_total_usable(product.id) == 4


def test_check_availability_reports_enough(services, make_product):
    product = make_product(quantity=3)

    result = services.availability_service.check_availability(
        product.id, 3, "2030-03-01", "2030-03-02"
    )

    assert result.available == 3
    assert result.is_enough


def test_check_availability_unknown_product(services):
    with pytest.raises(ProductNotFoundError):
        services.availability_service.check_availability(42, 1, "2030-03-01", "2030-03-02")


def test_check_items_sums_lines_per_product(services, make_product):
    first = make_product(quantity=5)
    second = make_product(quantity=1)

    results = services.availability_service.check_items(
        [
            {"product_id": first.id, "quantity": 3},
            {"product_id": first.id, "quantity": 3},
            {"product_id": second.id, "quantity": 1},
            {"product_id": second.id, "quantity": 9, "is_external": True},
        ],
        "2030-03-01",
        "2030-03-02",
    )

    by_product = {result.product_id: result for result in results}
    assert by_product[first.id].requested == 6
    assert not by_product[first.id].is_enough
    assert by_product[second.id].requested == 1
    assert by_product[second.id].is_enough


def test_parse_date_accepts_dates_and_iso_strings():
    assert parse_date(date(2030, 1, 5)) == date(2030, 1, 5)
    assert parse_date("2030-01-05") == date(2030, 1, 5)
    assert parse_date("2030-01-05T18:30:00") == date(2030, 1, 5)
