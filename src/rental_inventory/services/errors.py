"""Custom service layer errors."""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base error for service-layer failures."""


class ValidationError(ServiceError):
    """Raised when a business rule validation fails."""


class NotFoundError(ServiceError):
    """Raised when an entity is not found."""


class OrderNotFoundError(NotFoundError):
    """Raised when an order id does not exist."""

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found.")
        self.order_id = order_id


class ProductNotFoundError(NotFoundError):
    """Raised when a product id does not exist."""

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product {product_id} not found.")
        self.product_id = product_id


class SerialNotFoundError(NotFoundError):
    """Raised when a serial id does not exist."""

    def __init__(self, serial_id: int) -> None:
        super().__init__(f"Serial {serial_id} not found.")
        self.serial_id = serial_id


class InvalidOrderStateError(ValidationError):
    """Raised when an operation is not allowed in the order's status."""


class InsufficientStockError(ServiceError):
    """Raised when a quantity exceeds what is available to take."""

    def __init__(
        self,
        product_id: int,
        requested: int,
        available: int,
        *,
        reserved: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        bucket: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.reserved = reserved
        self.warehouse_id = warehouse_id
        self.bucket = bucket
        self.label = label
        super().__init__(self._build_message())

    @property
    def shortfall(self) -> int:
        return self.requested - self.available - (self.reserved or 0)

    def _build_message(self) -> str:
        product = self.label or f"product {self.product_id}"
        if self.reserved is not None:
            return (
                f"Insufficient stock for {product}: needed {self.requested}, "
                f"reserved {self.reserved}, available {self.available}."
            )
        source = f" in {self.bucket}" if self.bucket else ""
        return (
            f"Insufficient stock for {product}{source}: requested "
            f"{self.requested}, available {self.available}."
        )


class InsufficientDirtyStockError(InsufficientStockError):
    """Raised when cleaning more units than are waiting to be cleaned."""


class SerialUnavailableError(ServiceError):
    """Raised when a serial is not in the status an operation expects."""

    def __init__(self, serial_id: int, status: str, expected: str) -> None:
        super().__init__(
            f"Serial {serial_id} is {status}, expected {expected}."
        )
        self.serial_id = serial_id
        self.status = status
        self.expected = expected


class SerialInUseError(ServiceError):
    """Raised when deleting a serial that is not available."""

    def __init__(self, serial_id: int, status: str) -> None:
        super().__init__(f"Serial {serial_id} is {status} and cannot be deleted.")
        self.serial_id = serial_id
        self.status = status


class LedgerInconsistencyError(ServiceError):
    """Raised when stock counters contradict each other; aborts the operation."""
