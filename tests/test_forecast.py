import pytest

from rental_inventory.services.errors import ProductNotFoundError, ValidationError

TODAY = "2030-01-01"


@pytest.fixture
def scheduled(services, make_product, book):
    product = make_product(quantity=10)
    book([(product.id, 3)], start="2030-01-05", end="2030-01-07")
    out, _ = book([(product.id, 4)], start="2030-01-01", end="2030-01-03")
    services.order_service.ship(out.id)
    return product


def test_forecast_before_any_movement(services, scheduled):
    forecast = services.forecast_service.forecast(scheduled.id, "2030-01-02", today=TODAY)

    assert forecast.physical == 6
    assert forecast.expected_exports == 0
    assert forecast.expected_returns == 0
    assert forecast.forecast == 6


def test_forecast_counts_returns_due_by_the_day(services, scheduled):
    forecast = services.forecast_service.forecast(scheduled.id, "2030-01-03", today=TODAY)

    assert forecast.expected_returns == 4
    assert forecast.forecast == 10


def test_forecast_counts_unshipped_exports(services, scheduled):
    forecast = services.forecast_service.forecast(scheduled.id, "2030-01-05", today=TODAY)

    assert forecast.expected_exports == 3
    assert forecast.forecast == 7


def test_forecast_range(services, scheduled):
    days = services.forecast_service.forecast_range(scheduled.id, days=7, today=TODAY)

    assert [day.day for day in days][:2] == ["2030-01-01", "2030-01-02"]
    assert [day.forecast for day in days] == [6, 6, 10, 10, 7, 7, 7]


def test_forecast_never_goes_below_zero(services, make_product, book, warehouse):
    product = make_product(quantity=2)
    book([(product.id, 2)], start="2030-01-02", end="2030-01-04")
    services.warehouse_service.report_damage(product.id, 1)

    forecast = services.forecast_service.forecast(product.id, "2030-01-02", today=TODAY)

    assert forecast.physical == 1
    assert forecast.expected_exports == 2
    assert forecast.forecast == 0


def test_forecast_all_covers_active_products(services, make_product):
    first = make_product(quantity=1)
    second = make_product(quantity=2)
    services.product_service.deactivate(second.id)

    results = services.forecast_service.forecast_all("2030-01-02", today=TODAY)

    assert [(result.product_id, result.forecast) for result in results] == [(first.id, 1)]


def test_forecast_rejects_bad_input(services, make_product):
    product = make_product(quantity=1)

    with pytest.raises(ValidationError):
        services.forecast_service.forecast(product.id, "2029-12-31", today=TODAY)
    with pytest.raises(ValidationError):
        services.forecast_service.forecast_range(product.id, days=0, today=TODAY)
    with pytest.raises(ProductNotFoundError):
        services.forecast_service.forecast(999, "2030-01-02", today=TODAY)
