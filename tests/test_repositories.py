import pytest

from rental_inventory.repositories import SupplierRepo, order_repo
from rental_inventory.repositories.product_repo import normalize_code
from rental_inventory.repositories.serial_repo import normalize_serial_number
from rental_inventory.services.errors import NotFoundError


def test_customer_create_and_search(services):
    repo = services.customer_repo
    ana = repo.create(" Ana Lima ", phone="555-1234", email=" Ana@Example.com ")
    repo.create("Bruno Costa", phone="555-9999")

    assert ana.name == "Ana Lima"
    assert ana.email == "ana@example.com"
    assert [c.name for c in repo.search("example")] == ["Ana Lima"]
    assert [c.name for c in repo.search("555")] == ["Ana Lima", "Bruno Costa"]
    assert len(repo.search("  ")) == 2


def test_customer_update(services, customer):
    updated = services.customer_repo.update(
        customer.id, "Acme Events Ltd", None, "ops@acme.test", "key account"
    )

    assert updated.name == "Acme Events Ltd"
    assert updated.phone is None
    assert updated.notes == "key account"
    assert services.customer_repo.update(999, "Nobody", None, None, None) is None


def test_customer_with_orders_is_kept(services, customer, make_product, book):
    product = make_product(quantity=2)
    book([(product.id, 1)])
    idle = services.customer_repo.create("Idle customer")

    assert services.customer_repo.count_open_orders(customer.id) == 1
    assert not services.customer_repo.delete(customer.id)
    assert services.customer_repo.delete(idle.id)
    assert services.customer_repo.get_by_id(idle.id) is None


def test_supplier_crud(connection):
    repo = SupplierRepo(connection)
    supplier = repo.create("Stage Hire Co", contact="hire@stage.test")

    assert repo.update(supplier.id, "Stage Hire", None).name == "Stage Hire"
    assert [s.name for s in repo.list_all()] == ["Stage Hire"]
    assert repo.delete(supplier.id)
    assert repo.get_by_id(supplier.id) is None


def test_external_item_supplier_must_exist(services, customer, make_product, connection):
    product = make_product(quantity=0)
    supplier = SupplierRepo(connection).create("Stage Hire Co")

    order, items = services.order_service.create_order(
        customer.id,
        "2030-05-01",
        "2030-05-02",
        [
            {
                "product_id": product.id,
                "quantity": 6,
                "is_external": True,
                "supplier_id": supplier.id,
                "cost_price": 12.5,
            }
        ],
    )
    assert (items[0].supplier_id, items[0].cost_price) == (supplier.id, 12.5)

    with pytest.raises(NotFoundError):
        services.order_service.create_order(
            customer.id,
            "2030-05-01",
            "2030-05-02",
            [{"product_id": product.id, "quantity": 1, "is_external": True, "supplier_id": 77}],
        )


def test_codes_and_serial_numbers_are_normalized():
    assert normalize_code(" ab-1 ") == "AB-1"
    assert normalize_serial_number(" sn-7 ") == "SN-7"


def test_order_repository_needs_the_caller_connection(services, make_product, book):
    product = make_product(quantity=2)
    order, _ = book([(product.id, 1)])

    with pytest.raises(TypeError):
        order_repo.get_order(order.id)
    assert order_repo.get_order(order.id, connection=services.connection).id == order.id
