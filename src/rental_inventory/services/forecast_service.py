"""Projected stock on hand for upcoming days."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from rental_inventory.config import DEFAULT_FORECAST_DAYS
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories import order_repo
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.repositories.stock_repo import StockRepository
from rental_inventory.services.availability_service import parse_date
from rental_inventory.services.errors import ProductNotFoundError, ValidationError


@dataclass(frozen=True)
class StockForecast:
    product_id: int
    day: str
    physical: int
    expected_exports: int
    expected_returns: int

    @property
    def forecast(self) -> int:
        return max(0, self.physical + self.expected_returns - self.expected_exports)


class ForecastService:
    """Estimates units in the warehouse on a given day.

    Units in house today (available, reserved or dirty) plus units due back
    by the day, minus units still to ship for orders starting by then.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._stock_repo = StockRepository(connection)
        self._product_repo = ProductRepo(connection)
        self._logger = get_logger(self.__class__.__name__)

    def forecast(
        self,
        product_id: int,
        target_date: str | date,
        today: Optional[str | date] = None,
    ) -> StockForecast:
        if self._product_repo.get_by_id(product_id) is None:
            raise ProductNotFoundError(product_id)
        target = parse_date(target_date)
        today = parse_date(today) if today is not None else date.today()
        if target < today:
            raise ValidationError("Forecast date must not be in the past.")
        totals = self._stock_repo.totals_for_product(product_id)
        physical = totals.available + totals.reserved + totals.dirty
        exports = 0
        returns = 0
        for row in order_repo.list_open_lines(product_id, connection=self._connection):
            start = parse_date(row["start_date"])
            end = parse_date(row["end_date"])
            if today <= start <= target:
                exports += max(int(row["quantity"]) - int(row["exported_quantity"]), 0)
            if end <= target:
                returns += max(
                    int(row["exported_quantity"]) - int(row["returned_quantity"]), 0
                )
        return StockForecast(
            product_id=product_id,
            day=target.isoformat(),
            physical=physical,
            expected_exports=exports,
            expected_returns=returns,
        )

    def forecast_range(
        self,
        product_id: int,
        days: int = DEFAULT_FORECAST_DAYS,
        today: Optional[str | date] = None,
    ) -> list[StockForecast]:
        if days <= 0:
            raise ValidationError("Number of days must be greater than zero.")
        start = parse_date(today) if today is not None else date.today()
        return [
            self.forecast(product_id, start + timedelta(days=offset), today=start)
            for offset in range(days)
        ]

    def forecast_all(
        self,
        target_date: str | date,
        today: Optional[str | date] = None,
    ) -> list[StockForecast]:
        return [
            self.forecast(int(product.id), target_date, today=today)
            for product in self._product_repo.list_active()
        ]
