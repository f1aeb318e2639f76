"""Domain dataclasses and enums."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    DRAFT = "draft"
    BOOKED = "booked"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Orders in these states hold units against the availability calendar.
COMMITTED_ORDER_STATUSES = (OrderStatus.BOOKED, OrderStatus.ACTIVE)


class StockBucket(str, Enum):
    """Physical-custody state of a unit; every unit sits in exactly one."""

    AVAILABLE = "available"
    RESERVED = "reserved"
    ON_RENT = "on_rent"
    DIRTY = "dirty"
    BROKEN = "broken"

    @property
    def column(self) -> str:
        return f"{self.value}_qty"


USABLE_BUCKETS = (
    StockBucket.AVAILABLE,
    StockBucket.RESERVED,
    StockBucket.ON_RENT,
    StockBucket.DIRTY,
)


class SerialStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    ON_RENT = "on_rent"
    DIRTY = "dirty"
    BROKEN = "broken"

    @property
    def bucket(self) -> StockBucket:
        return StockBucket(self.value)

    @property
    def holds_order(self) -> bool:
        return self in (SerialStatus.RESERVED, SerialStatus.ON_RENT, SerialStatus.DIRTY)


class InventoryAction(str, Enum):
    RECEIVE = "receive"
    RETIRE = "retire"
    PREPARE = "prepare"
    RELEASE = "release"
    EXPORT = "export"
    IMPORT = "import"
    ADJUST = "adjust"
    CLEAN = "clean"
    DAMAGE = "damage"
    REPAIR = "repair"


@dataclass(slots=True)
class Product:
    id: Optional[int]
    code: str
    name: str
    category: Optional[str]
    price_per_day: float
    total_owned: int
    is_serialized: bool = False
    active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class Warehouse:
    id: Optional[int]
    name: str
    address: Optional[str] = None


@dataclass(slots=True)
class Customer:
    id: Optional[int]
    name: str
    phone: Optional[str]
    email: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class Supplier:
    id: Optional[int]
    name: str
    contact: Optional[str] = None


@dataclass(slots=True)
class StockRecord:
    """Bucket counters for one product; warehouse_id is None for totals."""

    product_id: int
    warehouse_id: Optional[int]
    available: int = 0
    reserved: int = 0
    on_rent: int = 0
    dirty: int = 0
    broken: int = 0
    id: Optional[int] = None

    def get(self, bucket: StockBucket) -> int:
        return int(getattr(self, bucket.value))

    @property
    def usable(self) -> int:
        return sum(self.get(bucket) for bucket in USABLE_BUCKETS)

    @property
    def total(self) -> int:
        return self.usable + self.broken

    def as_dict(self) -> dict[str, int]:
        return {bucket.value: self.get(bucket) for bucket in StockBucket}


@dataclass(slots=True)
class DeviceSerial:
    id: Optional[int]
    product_id: int
    serial_number: str
    warehouse_id: int
    status: SerialStatus = SerialStatus.AVAILABLE
    order_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class Order:
    id: Optional[int]
    customer_id: int
    start_date: str
    end_date: str
    status: OrderStatus
    total_amount: float = 0.0
    actual_return_date: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class OrderItem:
    id: Optional[int]
    order_id: int
    product_id: int
    quantity: int
    is_external: bool = False
    supplier_id: Optional[int] = None
    cost_price: Optional[float] = None
    exported_quantity: int = 0
    returned_quantity: int = 0
    reserved_quantity: int = 0

    @property
    def remaining_to_ship(self) -> int:
        return max(self.quantity - self.exported_quantity, 0)

    @property
    def remaining_to_prepare(self) -> int:
        return max(self.remaining_to_ship - self.reserved_quantity, 0)

    @property
    def on_rent_quantity(self) -> int:
        return max(self.exported_quantity - self.returned_quantity, 0)

    @property
    def is_fully_returned(self) -> bool:
        return self.returned_quantity >= self.quantity


@dataclass(slots=True)
class InventoryLogEntry:
    id: Optional[int]
    product_id: int
    action: InventoryAction
    quantity: int
    timestamp: str
    warehouse_id: Optional[int] = None
    order_id: Optional[int] = None
    from_bucket: Optional[StockBucket] = None
    to_bucket: Optional[StockBucket] = None
    note: Optional[str] = None
