import pytest

from rental_inventory.domain.models import InventoryAction, StockBucket
from rental_inventory.services.errors import ProductNotFoundError, ValidationError


def test_create_product_receives_initial_stock(services, warehouse):
    product = services.product_service.create_product(
        " spk-1 ", "Speaker", "audio", 30.0, initial_quantity=6
    )

    assert product.code == "SPK-1"
    assert product.total_owned == 6
    entry = services.audit_log_service.list_entries(product_id=product.id)[0]
    assert entry.action == InventoryAction.RECEIVE
    assert entry.warehouse_id == warehouse.id
    assert entry.note == "Initial stock"


def test_create_product_validates(services, warehouse):
    services.product_service.create_product("SPK-1", "Speaker")

    with pytest.raises(ValidationError):
        services.product_service.create_product("spk-1", "Other speaker")
    with pytest.raises(ValidationError):
        services.product_service.create_product("SPK-2", "")
    with pytest.raises(ValidationError):
        services.product_service.create_product("SPK-3", "Speaker", price_per_day=-1)
    with pytest.raises(ValidationError):
        services.product_service.create_product(
            "CAM-1", "Camera", is_serialized=True, initial_quantity=1
        )


def test_update_product_keeps_stock(services, make_product):
    product = make_product(quantity=3)

    updated = services.product_service.update_product(
        product.id, product.code, "Renamed", "lighting", 12.5
    )

    assert updated.name == "Renamed"
    assert updated.total_owned == 3
    with pytest.raises(ProductNotFoundError):
        services.product_service.update_product(999, "NEW", "New", None, 1.0)


def test_deactivate_hides_product(services, make_product):
    product = make_product()

    services.product_service.deactivate(product.id)

    assert product.id not in {p.id for p in services.product_service.list_products()}
    assert product.id in {
        p.id for p in services.product_service.list_products(include_inactive=True)
    }


def test_restock_and_write_off(services, make_product, totals):
    product = make_product(quantity=2)

    services.product_service.restock(product.id, 3, note="purchase")
    services.warehouse_service.report_damage(product.id, 1)
    services.product_service.write_off(product.id, 1, from_bucket=StockBucket.BROKEN)

    assert totals(product.id)["available"] == 4
    assert totals(product.id)["broken"] == 0
    assert services.product_service.get_product(product.id).total_owned == 4


def test_stock_summary_across_warehouses(services, make_product, warehouse):
    product = make_product(quantity=2)
    annex = services.warehouse_service.create_warehouse("Annex")
    services.product_service.restock(product.id, 5, warehouse_id=annex.id)

    summary = services.product_service.stock_summary(product.id)

    assert summary.totals.available == 7
    assert [(r.warehouse_id, r.available) for r in summary.warehouses] == [
        (warehouse.id, 2),
        (annex.id, 5),
    ]


def test_search_matches_name_and_code(services, make_product):
    make_product(name="Fog machine")

    assert [p.name for p in services.product_service.search("fog")] == ["Fog machine"]
    assert [p.name for p in services.product_service.search("p001")] == ["Fog machine"]
