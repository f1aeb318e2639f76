"""Availability calculations over committed order date ranges."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from dateutil import parser

from rental_inventory.domain.models import OrderItem
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories import order_repo
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.repositories.stock_repo import StockRepository
from rental_inventory.services.errors import (
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)


def parse_date(value: str | date) -> date:
    """Return ``value`` as a date; strings are read as ISO 8601."""
    if isinstance(value, date):
        return value
    return parser.isoparse(value).date()


def normalize_range(start_date: str | date, end_date: str | date) -> tuple[str, str]:
    """Return ISO start/end dates, rejecting ranges that end before they start."""
    try:
        start = parse_date(start_date)
        end = parse_date(end_date)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid dates. Check the start and end of the range.") from exc
    if end < start:
        raise ValidationError("The end date must not be before the start date.")
    return start.isoformat(), end.isoformat()


def peak_demand(commitments: Iterable[tuple[str | date, str | date, int]]) -> int:
    """Return the largest quantity committed at the same time.

    Each commitment occupies its units from its start date through its end
    date inclusive, so demand drops on the day after the end date.
    """
    deltas: dict[date, int] = defaultdict(int)
    for start_date, end_date, quantity in commitments:
        deltas[parse_date(start_date)] += int(quantity)
        deltas[parse_date(end_date) + timedelta(days=1)] -= int(quantity)
    current = 0
    peak = 0
    for day in sorted(deltas):
        current += deltas[day]
        peak = max(peak, current)
    return peak


@dataclass(frozen=True)
class ItemAvailability:
    product_id: int
    requested: int
    available: int

    @property
    def is_enough(self) -> bool:
        return self.available >= self.requested


class AvailabilityService:
    """Computes how many units of a product can still be promised."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._stock_repo = StockRepository(connection)
        self._product_repo = ProductRepo(connection)
        self._logger = get_logger(self.__class__.__name__)

    def get_total_usable(self, product_id: int) -> int:
        return self._stock_repo.totals_for_product(product_id).usable

    def compute_available(
        self,
        product_id: int,
        start_date: str | date,
        end_date: str | date,
        exclude_order_id: Optional[int] = None,
    ) -> int:
        """Usable units minus the peak committed demand inside the range.

        The result can be negative when the product is overbooked.
        """
        start_date, end_date = normalize_range(start_date, end_date)
        commitments = order_repo.list_committed_demand(
            product_id,
            start_date,
            end_date,
            exclude_order_id,
            connection=self._connection,
        )
        total_usable = self.get_total_usable(product_id)
        return total_usable - peak_demand(commitments)

    def check_availability(
        self,
        product_id: int,
        quantity: int,
        start_date: str | date,
        end_date: str | date,
    ) -> ItemAvailability:
        if self._product_repo.get_by_id(product_id) is None:
            raise ProductNotFoundError(product_id)
        available = self.compute_available(product_id, start_date, end_date)
        return ItemAvailability(
            product_id=product_id,
            requested=int(quantity),
            available=max(available, 0),
        )

    def check_items(
        self,
        items: Iterable[dict[str, object] | OrderItem],
        start_date: str | date,
        end_date: str | date,
        exclude_order_id: Optional[int] = None,
    ) -> list[ItemAvailability]:
        """Check every stock-backed product of ``items``; quantities are summed per product."""
        results: list[ItemAvailability] = []
        for product_id, quantity in self._aggregate_items(items):
            available = self.compute_available(
                product_id, start_date, end_date, exclude_order_id
            )
            results.append(
                ItemAvailability(
                    product_id=product_id,
                    requested=quantity,
                    available=max(available, 0),
                )
            )
        return results

    def validate_items(
        self,
        items: Iterable[dict[str, object] | OrderItem],
        start_date: str | date,
        end_date: str | date,
        exclude_order_id: Optional[int] = None,
    ) -> None:
        for result in self.check_items(items, start_date, end_date, exclude_order_id):
            if result.is_enough:
                continue
            product = self._product_repo.get_by_id(result.product_id)
            if product is None:
                raise ProductNotFoundError(result.product_id)
            self._logger.info(
                "Rejected request for %s x%s between %s and %s; %s available",
                product.code,
                result.requested,
                start_date,
                end_date,
                result.available,
            )
            raise InsufficientStockError(
                result.product_id,
                result.requested,
                result.available,
                label=product.name,
            )

    def _aggregate_items(
        self, items: Iterable[dict[str, object] | OrderItem]
    ) -> list[tuple[int, int]]:
        aggregated: dict[int, int] = {}
        for item in items:
            if isinstance(item, OrderItem):
                product_id = int(item.product_id)
                quantity = int(item.quantity)
                is_external = item.is_external
            else:
                product_id = int(item["product_id"])
                quantity = int(item["quantity"])
                is_external = bool(item.get("is_external"))
            if is_external:
                continue
            aggregated[product_id] = aggregated.get(product_id, 0) + quantity
        return list(aggregated.items())
