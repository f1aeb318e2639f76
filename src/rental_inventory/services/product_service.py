"""Product catalog and stock intake."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import List, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import Product, StockBucket, StockRecord
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.services.errors import ProductNotFoundError, ValidationError
from rental_inventory.services.ledger_service import LedgerService
from rental_inventory.services.warehouse_service import WarehouseService


@dataclass(frozen=True)
class ProductStock:
    product: Product
    totals: StockRecord
    warehouses: List[StockRecord]


class ProductService:
    """Service for product rules."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        default_warehouse_id: Optional[int] = None,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._repo = ProductRepo(connection)
        self._ledger = LedgerService(connection)
        self._warehouses = WarehouseService(connection, default_warehouse_id)
        self._logger = get_logger(self.__class__.__name__)

    def get_product(self, product_id: int) -> Product:
        product = self._repo.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def list_products(self, include_inactive: bool = False) -> List[Product]:
        if include_inactive:
            return self._repo.list_all()
        return self._repo.list_active()

    def search(self, term: str) -> List[Product]:
        return self._repo.search_by_name(term)

    def create_product(
        self,
        code: str,
        name: str,
        category: Optional[str] = None,
        price_per_day: float = 0.0,
        *,
        is_serialized: bool = False,
        initial_quantity: int = 0,
        warehouse_id: Optional[int] = None,
    ) -> Product:
        """Add a product, optionally receiving its first units."""
        self._validate_fields(code, name, price_per_day)
        if initial_quantity < 0:
            raise ValidationError("Initial quantity must not be negative.")
        if is_serialized and initial_quantity:
            raise ValidationError(
                "Serialized products receive their units by adding serials."
            )
        if self._repo.get_by_code(code) is not None:
            raise ValidationError(f"Product code {code.strip().upper()} already exists.")
        with transaction(self._connection):
            product = self._repo.create(
                code.strip(),
                name.strip(),
                category,
                float(price_per_day),
                is_serialized=is_serialized,
            )
            if initial_quantity:
                self._ledger.receive(
                    int(product.id),
                    self._warehouses.resolve_warehouse_id(warehouse_id),
                    initial_quantity,
                    note="Initial stock",
                )
        self._logger.info("Product %s created", product.code)
        return self.get_product(int(product.id))

    def update_product(
        self,
        product_id: int,
        code: str,
        name: str,
        category: Optional[str],
        price_per_day: float,
        active: bool = True,
    ) -> Product:
        self._validate_fields(code, name, price_per_day)
        existing = self._repo.get_by_code(code)
        if existing is not None and existing.id != product_id:
            raise ValidationError(f"Product code {existing.code} already exists.")
        product = self._repo.update(
            product_id, code.strip(), name.strip(), category, float(price_per_day), active
        )
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def deactivate(self, product_id: int) -> None:
        if not self._repo.soft_delete(product_id):
            raise ProductNotFoundError(product_id)
        self._logger.info("Product id=%s deactivated", product_id)

    def restock(
        self,
        product_id: int,
        quantity: int,
        warehouse_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> StockRecord:
        product = self.get_product(product_id)
        if product.is_serialized:
            raise ValidationError(
                f"Product {product.code} tracks serials; add serials to restock it."
            )
        return self._ledger.receive(
            product_id,
            self._warehouses.resolve_warehouse_id(warehouse_id),
            quantity,
            note=note,
        )

    def write_off(
        self,
        product_id: int,
        quantity: int,
        *,
        from_bucket: StockBucket = StockBucket.AVAILABLE,
        warehouse_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> StockRecord:
        """Retire units that leave the inventory for good."""
        product = self.get_product(product_id)
        if product.is_serialized:
            raise ValidationError(
                f"Product {product.code} tracks serials; delete serials to retire units."
            )
        return self._ledger.retire(
            product_id,
            self._warehouses.resolve_warehouse_id(warehouse_id),
            quantity,
            from_bucket=from_bucket,
            note=note,
        )

    def stock_summary(self, product_id: int) -> ProductStock:
        product = self.get_product(product_id)
        return ProductStock(
            product=product,
            totals=self._ledger.get_totals(product_id),
            warehouses=self._ledger.list_stock(product_id),
        )

    def _validate_fields(self, code: str, name: str, price_per_day: float) -> None:
        if not code or not code.strip():
            raise ValidationError("Product code is required.")
        if not name or not name.strip():
            raise ValidationError("Product name is required.")
        if float(price_per_day) < 0:
            raise ValidationError("Price per day must not be negative.")
