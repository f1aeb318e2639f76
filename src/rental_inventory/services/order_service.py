"""Order lifecycle: booking, preparation, shipment, return and completion."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Callable, Iterable, Mapping, Optional

from rental_inventory.db.connection import transaction
from rental_inventory.domain.models import (
    COMMITTED_ORDER_STATUSES,
    InventoryAction,
    Order,
    OrderItem,
    OrderStatus,
    StockBucket,
)
from rental_inventory.logging_config import get_logger
from rental_inventory.repositories import order_repo
from rental_inventory.repositories.customer_repo import CustomerRepo
from rental_inventory.repositories.product_repo import ProductRepo
from rental_inventory.repositories.supplier_repo import SupplierRepo
from rental_inventory.services.availability_service import (
    AvailabilityService,
    normalize_range,
)
from rental_inventory.services.errors import (
    InsufficientStockError,
    InvalidOrderStateError,
    LedgerInconsistencyError,
    NotFoundError,
    OrderNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from rental_inventory.services.ledger_service import LedgerService
from rental_inventory.services.serial_service import SerialService
from rental_inventory.services.warehouse_service import WarehouseService


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class OrderService:
    """Drives orders through their lifecycle.

    Every public mutation runs in one transaction: the order, its items, the
    stock buckets, serials and log entries change together or not at all.
    Stock moves happen in a single warehouse per call, the configured default
    unless ``warehouse_id`` is given.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        default_warehouse_id: Optional[int] = None,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._warehouses = WarehouseService(connection, default_warehouse_id)
        self._availability = AvailabilityService(connection)
        self._ledger = LedgerService(connection)
        self._serials = SerialService(connection)
        self._customer_repo = CustomerRepo(connection)
        self._product_repo = ProductRepo(connection)
        self._supplier_repo = SupplierRepo(connection)
        self._logger = get_logger(self.__class__.__name__)

    # Queries

    def get_order(self, order_id: int) -> tuple[Order, list[OrderItem]]:
        order_data = order_repo.get_order_with_items(
            order_id, connection=self._connection
        )
        if not order_data:
            raise OrderNotFoundError(order_id)
        return order_data

    def list_orders(self, status: Optional[str | OrderStatus] = None) -> list[Order]:
        return order_repo.list_orders(status, connection=self._connection)

    # Booking

    def create_order(
        self,
        customer_id: int,
        start_date: str | date,
        end_date: str | date,
        items: Iterable[dict[str, object]],
        total_amount: float = 0.0,
        note: Optional[str] = None,
    ) -> tuple[Order, list[OrderItem]]:
        start_date, end_date = normalize_range(start_date, end_date)
        items = self._validate_item_payload(items)
        self._require_customer(customer_id)
        with transaction(self._connection):
            self._availability.validate_items(items, start_date, end_date)
            order, saved_items = order_repo.create_order(
                customer_id,
                start_date,
                end_date,
                items,
                total_amount,
                OrderStatus.BOOKED,
                note,
                connection=self._connection,
            )
        self._logger.info(
            "Order %s booked for customer_id=%s (%s to %s, %s line(s))",
            order.id,
            customer_id,
            start_date,
            end_date,
            len(saved_items),
        )
        return order, saved_items

    def update_order(
        self,
        order_id: int,
        customer_id: int,
        start_date: str | date,
        end_date: str | date,
        items: Iterable[dict[str, object]],
        total_amount: float = 0.0,
        note: Optional[str] = None,
    ) -> tuple[Order, list[OrderItem]]:
        """Rewrite a booked order that has not been prepared or shipped."""
        start_date, end_date = normalize_range(start_date, end_date)
        items = self._validate_item_payload(items)
        self._require_customer(customer_id)
        with transaction(self._connection):
            order, current_items = self.get_order(order_id)
            if order.status not in (OrderStatus.DRAFT, OrderStatus.BOOKED):
                raise InvalidOrderStateError(
                    f"Order {order_id} is {order.status.value} and can no longer be edited."
                )
            self._require_untouched(order_id, current_items, "edited")
            if order.status == OrderStatus.BOOKED:
                self._availability.validate_items(
                    items, start_date, end_date, exclude_order_id=order_id
                )
            order_repo.replace_order(
                order_id,
                customer_id,
                start_date,
                end_date,
                items,
                total_amount,
                note,
                connection=self._connection,
            )
        self._logger.info("Order %s updated", order_id)
        return self.get_order(order_id)

    # Fulfilment

    def prepare(
        self,
        order_id: int,
        product_id: int,
        *,
        quantity: Optional[int] = None,
        serial_ids: Optional[Iterable[int]] = None,
        warehouse_id: Optional[int] = None,
    ) -> tuple[Order, list[OrderItem]]:
        """Set units aside for an order (available -> reserved)."""
        serial_ids = list(serial_ids or [])
        if len(set(serial_ids)) != len(serial_ids):
            raise ValidationError("The same serial was given more than once.")
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            self._require_status(order, COMMITTED_ORDER_STATUSES, "prepared")
            product = self._product_repo.get_by_id(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            lines = [
                item
                for item in items
                if item.product_id == product_id and not item.is_external
            ]
            if not lines:
                raise NotFoundError(
                    f"Order {order_id} has no stock item for product {product.code}."
                )
            if serial_ids:
                count = len(serial_ids)
                if quantity is not None and int(quantity) != count:
                    raise ValidationError(
                        "Quantity does not match the number of serials given."
                    )
            else:
                if product.is_serialized:
                    raise ValidationError(
                        f"Product {product.code} tracks serials; choose the units to prepare."
                    )
                count = int(quantity or 0)
                if count <= 0:
                    raise ValidationError("Quantity to prepare must be greater than zero.")
            capacity = sum(item.remaining_to_prepare for item in lines)
            if count > capacity:
                raise ValidationError(
                    f"Order {order_id} needs {capacity} more unit(s) of "
                    f"{product.code} prepared, got {count}."
                )

            wh_id = self._resolve_warehouse(warehouse_id)
            if serial_ids:
                for serial_id in serial_ids:
                    serial = self._serials.get_serial(serial_id)
                    if serial.product_id != product_id:
                        raise ValidationError(
                            f"Serial {serial.serial_number} belongs to another product."
                        )
                    if serial.warehouse_id != wh_id:
                        raise ValidationError(
                            f"Serial {serial.serial_number} is stored in warehouse "
                            f"{serial.warehouse_id}, not in warehouse {wh_id}."
                        )
                    self._serials.assign_serial(serial_id, order_id)
            else:
                self._ledger.move_stock(
                    product_id,
                    wh_id,
                    StockBucket.AVAILABLE,
                    StockBucket.RESERVED,
                    count,
                    action=InventoryAction.PREPARE,
                    order_id=order_id,
                )

            remaining = count
            for item in lines:
                take = min(remaining, item.remaining_to_prepare)
                if take:
                    order_repo.add_item_quantities(
                        item.id, reserved=take, connection=self._connection
                    )
                    remaining -= take
        self._logger.info(
            "Order %s: prepared %s unit(s) of %s", order_id, count, product.code
        )
        return self.get_order(order_id)

    def ship(
        self,
        order_id: int,
        quantities: Optional[Mapping[int, int]] = None,
        *,
        warehouse_id: Optional[int] = None,
    ) -> tuple[Order, list[OrderItem]]:
        """Send units out to the customer.

        ``quantities`` maps item ids to the units to ship; by default every
        item ships what is left of it. Reserved units of the item are used
        before available ones.
        """
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            self._require_status(order, COMMITTED_ORDER_STATUSES, "shipped")
            selection = self._select_items(
                items, quantities, lambda item: item.remaining_to_ship
            )
            shipped = 0
            for item, qty in selection:
                if qty > item.remaining_to_ship:
                    raise ValidationError(
                        f"Item {item.id} has only {item.remaining_to_ship} unit(s) left to ship."
                    )
                if qty == 0:
                    continue
                if item.is_external:
                    order_repo.add_item_quantities(
                        item.id, exported=qty, connection=self._connection
                    )
                    shipped += qty
                    continue
                wh_id = self._resolve_warehouse(warehouse_id)
                stock = self._ledger.get_stock(item.product_id, wh_id)
                from_reserved = min(qty, item.reserved_quantity, stock.reserved)
                from_available = qty - from_reserved
                if from_available > stock.available:
                    product = self._product_repo.get_by_id(item.product_id)
                    raise InsufficientStockError(
                        item.product_id,
                        qty,
                        stock.available,
                        reserved=from_reserved,
                        warehouse_id=wh_id,
                        label=product.name if product else None,
                    )
                self._export(
                    order_id,
                    item,
                    wh_id,
                    from_reserved,
                    from_available,
                    action=InventoryAction.EXPORT,
                )
                order_repo.add_item_quantities(
                    item.id,
                    exported=qty,
                    reserved=-from_reserved,
                    connection=self._connection,
                )
                shipped += qty
            if shipped and order.status == OrderStatus.BOOKED:
                order_repo.set_status(
                    order_id, OrderStatus.ACTIVE, connection=self._connection
                )
        self._logger.info("Order %s: shipped %s unit(s)", order_id, shipped)
        return self.get_order(order_id)

    def return_items(
        self,
        order_id: int,
        quantities: Optional[Mapping[int, int]] = None,
        *,
        warehouse_id: Optional[int] = None,
    ) -> tuple[Order, list[OrderItem]]:
        """Take units back in as dirty stock.

        By default every item returns everything not yet returned. Units
        returned without a recorded export are exported retroactively first
        and logged as adjustments. The order completes once every item is
        fully returned.
        """
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            self._require_status(order, COMMITTED_ORDER_STATUSES, "returned")
            selection = self._select_items(
                items, quantities, lambda item: item.quantity - item.returned_quantity
            )
            adjusted = False
            for item, qty in selection:
                outstanding = item.quantity - item.returned_quantity
                if qty > outstanding:
                    raise ValidationError(
                        f"Item {item.id} has only {outstanding} unit(s) left to return."
                    )
                if qty == 0:
                    continue
                phantom = item.returned_quantity + qty - item.exported_quantity
                if item.is_external:
                    order_repo.add_item_quantities(
                        item.id,
                        exported=max(phantom, 0),
                        returned=qty,
                        connection=self._connection,
                    )
                    continue
                wh_id = self._resolve_warehouse(warehouse_id)
                if phantom > 0:
                    self._adjust_missing_export(order_id, item, wh_id, phantom)
                    adjusted = True
                self._move_back(
                    order_id, item.product_id, wh_id, qty, InventoryAction.IMPORT
                )
                order_repo.add_item_quantities(
                    item.id, returned=qty, connection=self._connection
                )
            if adjusted and order.status == OrderStatus.BOOKED:
                order_repo.set_status(
                    order_id, OrderStatus.ACTIVE, connection=self._connection
                )
            items = order_repo.list_items(order_id, connection=self._connection)
            completed = bool(items) and all(item.is_fully_returned for item in items)
            if completed:
                order_repo.mark_completed(
                    order_id, _now_iso(), connection=self._connection
                )
        self._logger.info(
            "Order %s: return processed%s",
            order_id,
            " and completed" if completed else "",
        )
        return self.get_order(order_id)

    def force_complete(
        self, order_id: int, *, warehouse_id: Optional[int] = None
    ) -> tuple[Order, list[OrderItem]]:
        """Complete an order regardless of what is still out.

        Units on rent come back as dirty and leftover reservations go back to
        available stock.
        """
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            if order.status == OrderStatus.COMPLETED:
                return order, items
            if order.status == OrderStatus.CANCELLED:
                raise InvalidOrderStateError(
                    f"Order {order_id} is cancelled and cannot be completed."
                )
            for item in items:
                outstanding = item.on_rent_quantity
                if item.is_external:
                    if outstanding:
                        order_repo.add_item_quantities(
                            item.id, returned=outstanding, connection=self._connection
                        )
                    continue
                if outstanding:
                    wh_id = self._resolve_warehouse(warehouse_id)
                    self._move_back(
                        order_id,
                        item.product_id,
                        wh_id,
                        outstanding,
                        InventoryAction.IMPORT,
                        note="Force-complete",
                    )
                    order_repo.add_item_quantities(
                        item.id, returned=outstanding, connection=self._connection
                    )
                if item.reserved_quantity:
                    self._release(
                        order_id, item, self._resolve_warehouse(warehouse_id)
                    )
            order_repo.mark_completed(order_id, _now_iso(), connection=self._connection)
        self._logger.warning("Order %s force-completed", order_id)
        return self.get_order(order_id)

    # Administration

    def cancel_order(self, order_id: int, *, warehouse_id: Optional[int] = None) -> Order:
        """Cancel an order that has not shipped anything."""
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            if order.status == OrderStatus.CANCELLED:
                return order
            if order.status not in (OrderStatus.DRAFT, OrderStatus.BOOKED):
                raise InvalidOrderStateError(
                    f"Order {order_id} is {order.status.value} and cannot be cancelled."
                )
            if any(item.exported_quantity for item in items):
                raise InvalidOrderStateError(
                    f"Order {order_id} has shipped units and cannot be cancelled."
                )
            for item in items:
                if item.reserved_quantity and not item.is_external:
                    self._release(order_id, item, self._resolve_warehouse(warehouse_id))
            order_repo.set_status(
                order_id, OrderStatus.CANCELLED, connection=self._connection
            )
        self._logger.info("Order %s cancelled", order_id)
        return self.get_order(order_id)[0]

    def set_status(self, order_id: int, status: str | OrderStatus) -> Order:
        """Administrative status correction.

        Only patches that need no stock reconciliation are written directly.
        Completing or cancelling goes through :meth:`force_complete` and
        :meth:`cancel_order`; any other patch that would contradict the
        ledger is refused.
        """
        try:
            target = OrderStatus(str(getattr(status, "value", status)).lower())
        except ValueError as exc:
            raise ValidationError(f"Unknown order status: {status}.") from exc
        order, items = self.get_order(order_id)
        self._logger.warning(
            "Status patch requested for order %s: %s -> %s",
            order_id,
            order.status.value,
            target.value,
        )
        if target == order.status:
            return order
        if target == OrderStatus.COMPLETED:
            return self.force_complete(order_id)[0]
        if target == OrderStatus.CANCELLED:
            return self.cancel_order(order_id)
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            shipped = any(item.exported_quantity for item in items)
            if target == OrderStatus.ACTIVE:
                if order.status != OrderStatus.BOOKED or not shipped:
                    raise InvalidOrderStateError(
                        f"Order {order_id} has nothing on rent and cannot become active."
                    )
            else:
                if order.status not in (OrderStatus.DRAFT, OrderStatus.BOOKED):
                    raise InvalidOrderStateError(
                        f"Order {order_id} is {order.status.value} and cannot "
                        f"go back to {target.value}."
                    )
                self._require_untouched(order_id, items, f"set to {target.value}")
                if target == OrderStatus.BOOKED:
                    self._availability.validate_items(
                        items,
                        order.start_date,
                        order.end_date,
                        exclude_order_id=order_id,
                    )
            order_repo.set_status(order_id, target, connection=self._connection)
        return self.get_order(order_id)[0]

    def delete_order(self, order_id: int) -> None:
        with transaction(self._connection):
            order, items = self.get_order(order_id)
            self._require_untouched(order_id, items, "deleted")
            order_repo.delete_order(order_id, connection=self._connection)
        self._logger.info("Order %s deleted", order_id)

    # Helpers

    def _export(
        self,
        order_id: int,
        item: OrderItem,
        warehouse_id: int,
        from_reserved: int,
        from_available: int,
        *,
        action: InventoryAction,
        note: Optional[str] = None,
    ) -> None:
        if from_reserved:
            self._ledger.move_stock(
                item.product_id,
                warehouse_id,
                StockBucket.RESERVED,
                StockBucket.ON_RENT,
                from_reserved,
                action=action,
                order_id=order_id,
                note=note,
            )
            self._serials.sync_with_move(
                item.product_id,
                warehouse_id,
                StockBucket.RESERVED,
                StockBucket.ON_RENT,
                from_reserved,
                order_id=order_id,
            )
        if from_available:
            self._ledger.move_stock(
                item.product_id,
                warehouse_id,
                StockBucket.AVAILABLE,
                StockBucket.ON_RENT,
                from_available,
                action=action,
                order_id=order_id,
                note=note,
            )
            self._serials.sync_with_move(
                item.product_id,
                warehouse_id,
                StockBucket.AVAILABLE,
                StockBucket.ON_RENT,
                from_available,
                attach_order_id=order_id,
            )

    def _adjust_missing_export(
        self, order_id: int, item: OrderItem, warehouse_id: int, phantom: int
    ) -> None:
        stock = self._ledger.get_stock(item.product_id, warehouse_id)
        from_reserved = min(phantom, item.reserved_quantity, stock.reserved)
        from_available = phantom - from_reserved
        if from_available > stock.available:
            raise LedgerInconsistencyError(
                f"Cannot record the missing export of {phantom} unit(s) of product "
                f"{item.product_id} for order {order_id}: only {stock.available} "
                f"available and {from_reserved} reserved."
            )
        self._export(
            order_id,
            item,
            warehouse_id,
            from_reserved,
            from_available,
            action=InventoryAction.ADJUST,
            note=f"Return of {phantom} unit(s) without a recorded export",
        )
        order_repo.add_item_quantities(
            item.id,
            exported=phantom,
            reserved=-from_reserved,
            connection=self._connection,
        )
        self._logger.warning(
            "Order %s item %s: auto-adjusted %s unit(s) never scanned out",
            order_id,
            item.id,
            phantom,
        )

    def _move_back(
        self,
        order_id: int,
        product_id: int,
        warehouse_id: int,
        quantity: int,
        action: InventoryAction,
        note: Optional[str] = None,
    ) -> None:
        try:
            self._ledger.move_stock(
                product_id,
                warehouse_id,
                StockBucket.ON_RENT,
                StockBucket.DIRTY,
                quantity,
                action=action,
                order_id=order_id,
                note=note,
            )
        except InsufficientStockError as exc:
            raise LedgerInconsistencyError(
                f"Order {order_id} returns {quantity} unit(s) of product "
                f"{product_id} but only {exc.available} are on rent."
            ) from exc
        self._serials.sync_with_move(
            product_id,
            warehouse_id,
            StockBucket.ON_RENT,
            StockBucket.DIRTY,
            quantity,
            order_id=order_id,
        )

    def _release(self, order_id: int, item: OrderItem, warehouse_id: int) -> None:
        quantity = item.reserved_quantity
        try:
            self._ledger.move_stock(
                item.product_id,
                warehouse_id,
                StockBucket.RESERVED,
                StockBucket.AVAILABLE,
                quantity,
                action=InventoryAction.RELEASE,
                order_id=order_id,
            )
        except InsufficientStockError as exc:
            raise LedgerInconsistencyError(
                f"Order {order_id} holds {quantity} reserved unit(s) of product "
                f"{item.product_id} but only {exc.available} are reserved."
            ) from exc
        self._serials.sync_with_move(
            item.product_id,
            warehouse_id,
            StockBucket.RESERVED,
            StockBucket.AVAILABLE,
            quantity,
            order_id=order_id,
        )
        order_repo.add_item_quantities(
            item.id, reserved=-quantity, connection=self._connection
        )

    def _select_items(
        self,
        items: list[OrderItem],
        quantities: Optional[Mapping[int, int]],
        default_quantity: Callable[[OrderItem], int],
    ) -> list[tuple[OrderItem, int]]:
        if quantities is None:
            return [(item, max(default_quantity(item), 0)) for item in items]
        by_id = {item.id: item for item in items}
        selection: list[tuple[OrderItem, int]] = []
        for item_id, qty in quantities.items():
            item = by_id.get(int(item_id))
            if item is None:
                raise NotFoundError(f"Order item {item_id} is not part of this order.")
            if int(qty) < 0:
                raise ValidationError("Quantities must not be negative.")
            selection.append((item, int(qty)))
        return selection

    def _validate_item_payload(
        self, items: Iterable[dict[str, object]]
    ) -> list[dict[str, object]]:
        items = [dict(item) for item in items]
        if not items:
            raise ValidationError("An order needs at least one item.")
        for item in items:
            try:
                product_id = int(item["product_id"])
                quantity = int(item["quantity"])
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(
                    "Each item needs a product and a whole quantity."
                ) from exc
            if quantity <= 0:
                raise ValidationError("Item quantities must be greater than zero.")
            if self._product_repo.get_by_id(product_id) is None:
                raise ProductNotFoundError(product_id)
            supplier_id = item.get("supplier_id")
            if item.get("is_external") and supplier_id is not None:
                if self._supplier_repo.get_by_id(int(supplier_id)) is None:
                    raise NotFoundError(f"Supplier {supplier_id} not found.")
        return items

    def _require_customer(self, customer_id: int) -> None:
        if self._customer_repo.get_by_id(customer_id) is None:
            raise NotFoundError(f"Customer {customer_id} not found.")

    def _require_status(
        self, order: Order, allowed: Iterable[OrderStatus], verb: str
    ) -> None:
        if order.status not in tuple(allowed):
            raise InvalidOrderStateError(
                f"Order {order.id} is {order.status.value} and cannot be {verb}."
            )

    def _require_untouched(
        self, order_id: int, items: Iterable[OrderItem], verb: str
    ) -> None:
        for item in items:
            if item.exported_quantity or item.reserved_quantity:
                raise InvalidOrderStateError(
                    f"Order {order_id} has prepared or shipped units and cannot be {verb}."
                )

    def _resolve_warehouse(self, warehouse_id: Optional[int]) -> int:
        return self._warehouses.resolve_warehouse_id(warehouse_id)
