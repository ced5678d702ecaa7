from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

SnapshotKey = tuple[str, str, str]
DefinitionKey = tuple[str, str]


class UsageType(str, Enum):
    SINGLE_USE = "SINGLE_USE"
    REUSABLE = "REUSABLE"


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ItemCondition(str, Enum):
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    EXPIRED = "EXPIRED"


class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    SHIFT = "SHIFT"


class WorkShift(str, Enum):
    SHIFT_1 = "SHIFT_1"
    SHIFT_2 = "SHIFT_2"
    SHIFT_3 = "SHIFT_3"
    ADMIN = "ADMIN"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    LEADER = "LEADER"
    STAFF = "STAFF"


def new_record_id() -> str:
    return uuid.uuid4().hex[:12]


def _coerce_number(value: Any) -> float:
    # Spreadsheet cells arrive as numbers, numeric strings or blanks.
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _enum_or_default(enum_type: type[Enum], value: Any, default: Enum) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().upper())
    except ValueError:
        return default


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InventoryItem(WireModel):
    """Stock of one item definition at one location."""

    id: str
    name: str
    category: str = "General"
    size: str = "-"
    expected_qty: int = 0
    actual_qty: int = 0
    min_stock_threshold: int = 0
    daily_usage: float = 0.0
    unit: str = "pcs"
    location: str
    usage_type: UsageType = UsageType.REUSABLE
    status: ApprovalStatus = ApprovalStatus.PENDING
    condition: ItemCondition = ItemCondition.GOOD
    last_updated: str = ""
    updated_by: str = ""
    notes: str | None = None

    @field_validator("id", "name", "category", "size", "unit", "location", "last_updated", "updated_by", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("expected_qty", "actual_qty", "min_stock_threshold", mode="before")
    @classmethod
    def _whole_number(cls, value: Any) -> int:
        return int(_coerce_number(value))

    @field_validator("daily_usage", mode="before")
    @classmethod
    def _usage(cls, value: Any) -> float:
        usage = _coerce_number(value)
        if usage < 0:
            raise ValueError("daily usage cannot be negative")
        return usage

    @field_validator("usage_type", mode="before")
    @classmethod
    def _usage_type(cls, value: Any) -> UsageType:
        return _enum_or_default(UsageType, value, UsageType.REUSABLE)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> ApprovalStatus:
        return _enum_or_default(ApprovalStatus, value, ApprovalStatus.PENDING)

    @field_validator("condition", mode="before")
    @classmethod
    def _condition(cls, value: Any) -> ItemCondition:
        return _enum_or_default(ItemCondition, value, ItemCondition.GOOD)

    @property
    def key(self) -> SnapshotKey:
        return (self.name, self.size, self.location)

    @property
    def definition_key(self) -> DefinitionKey:
        return (self.name, self.size)


class Transaction(WireModel):
    """One movement event. Frozen: the ledger never rewrites an entry."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: str
    item_id: str | None = None
    item_name: str | None = None
    type: MovementType
    quantity: int
    work_shift: WorkShift = WorkShift.SHIFT_1
    item_condition: ItemCondition = ItemCondition.GOOD
    from_location: str | None = None
    to_location: str | None = None
    date: str
    performed_by: str
    notes: str | None = None


class SheetConfig(WireModel):
    script_url: str = ""
    is_connected: bool = False
    auto_sync: bool = False
    pull_lock: bool = False


class User(WireModel):
    id: str
    name: str
    username: str
    role: UserRole = UserRole.STAFF
    email: str = ""


class AuditLogEntry(WireModel):
    timestamp: str
    user: str
    role: str
    activity: str
    details: str
