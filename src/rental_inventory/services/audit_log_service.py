"""Read side of the append-only inventory log."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from rental_inventory.domain.models import (
    InventoryAction,
    InventoryLogEntry,
    StockBucket,
    StockRecord,
)
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories.inventory_log_repo import InventoryLogRepository


@dataclass(frozen=True)
class BucketSnapshot:
    """Bucket totals for a product right after ``entry`` was applied."""

    entry: InventoryLogEntry
    buckets: dict[str, int]


class AuditLogService:
    """Queries and replays inventory log entries.

    The ledger is the source of truth for current stock; the log only has to
    be complete enough to rebuild how the buckets got there.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._repo = InventoryLogRepository(connection)
        self._logger = get_logger(self.__class__.__name__)

    def list_entries(
        self,
        product_id: Optional[int] = None,
        order_id: Optional[int] = None,
        action: Optional[InventoryAction] = None,
        limit: Optional[int] = None,
    ) -> list[InventoryLogEntry]:
        """Return entries newest first."""
        return self._repo.list_entries(
            product_id=product_id,
            order_id=order_id,
            action=action,
            limit=limit,
        )

    def list_adjustments(self, product_id: Optional[int] = None) -> list[InventoryLogEntry]:
        """Return auto-adjustments made for returns that were never exported."""
        return self._repo.list_entries(
            product_id=product_id, action=InventoryAction.ADJUST
        )

    def replay(
        self, product_id: int, warehouse_id: Optional[int] = None
    ) -> list[BucketSnapshot]:
        entries = [
            entry
            for entry in self._repo.list_entries(product_id=product_id, newest_first=False)
            if warehouse_id is None or entry.warehouse_id == warehouse_id
        ]
        buckets: dict[str, int] = defaultdict(int)
        history: list[BucketSnapshot] = []
        for entry in entries:
            if entry.from_bucket is not None:
                buckets[entry.from_bucket.value] -= entry.quantity
            if entry.to_bucket is not None:
                buckets[entry.to_bucket.value] += entry.quantity
            history.append(
                BucketSnapshot(
                    entry=entry,
                    buckets={bucket.value: buckets[bucket.value] for bucket in StockBucket},
                )
            )
        return history

    def rebuild_stock(
        self, product_id: int, warehouse_id: Optional[int] = None
    ) -> StockRecord:
        """Return the bucket counters implied by the full log."""
        history = self.replay(product_id, warehouse_id)
        record = StockRecord(product_id=product_id, warehouse_id=warehouse_id)
        if not history:
            return record
        for bucket, quantity in history[-1].buckets.items():
            setattr(record, bucket, quantity)
        return record
