from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Protocol, Sequence

from .catalog import LocationStock, location_view
from .config import PRIMARY_LOCATION
from .models import InventoryItem, ItemCondition, MovementType, Transaction, WorkShift, new_record_id
from .movement_validation import validate_movement

DEFAULT_SAFETY_FACTOR = 2


class RestockPeriod(str, Enum):
    DAY = "1D"
    WEEK = "1W"
    MONTH = "1M"

    @property
    def days(self) -> int:
        return {"1D": 1, "1W": 7, "1M": 30}[self.value]


class StockStatus(str, Enum):
    EMPTY = "EMPTY"
    CRITICAL = "CRITICAL"
    SAFE = "SAFE"


class Stocked(Protocol):
    name: str
    daily_usage: float
    expected_qty: int


@dataclass(frozen=True)
class RestockRequirement:
    target: int
    gap: int


@dataclass(frozen=True)
class RestockLine:
    stock: LocationStock
    requirement: RestockRequirement
    status: StockStatus


def _days(period: RestockPeriod | int) -> int:
    return period.days if isinstance(period, RestockPeriod) else int(period)


def requirement(item: Stocked, period_days: RestockPeriod | int, *, safety_factor: int = DEFAULT_SAFETY_FACTOR) -> RestockRequirement:
    """Target = ceil(daily usage x days x safety factor); gap is what is missing."""
    days = _days(period_days)
    if days < 0:
        raise ValueError(f"period_days must not be negative, got {days}")
    if safety_factor < 1:
        raise ValueError(f"safety_factor must be >= 1, got {safety_factor}")
    # Decimal of the repr keeps 1.1 * 10 * 2 at 22 instead of 22.000000000000004.
    usage = max(Decimal(str(item.daily_usage or 0)), Decimal(0))
    target = math.ceil(usage * days * safety_factor)
    return RestockRequirement(target=target, gap=max(target - item.expected_qty, 0))


def stock_status(current: int, target: int) -> StockStatus:
    if current <= 0:
        return StockStatus.EMPTY
    if current < target / 2:
        return StockStatus.CRITICAL
    return StockStatus.SAFE


def build_replenishment(
    item: Stocked,
    target_location: str,
    amount: int | None = None,
    *,
    actor: str,
    period_days: RestockPeriod | int = RestockPeriod.WEEK,
    source_location: str = PRIMARY_LOCATION,
    safety_factor: int = DEFAULT_SAFETY_FACTOR,
    now: Callable[[], datetime] | None = None,
) -> Transaction | None:
    """SHIFT stock from the source warehouse to cover the gap at ``target_location``.

    A positive manual ``amount`` overrides the computed gap. Returns None when
    nothing needs to move.
    """
    computed = requirement(item, period_days, safety_factor=safety_factor)
    final_amount = amount if amount is not None and amount > 0 else computed.gap
    if final_amount <= 0:
        return None
    label = period_days.value if isinstance(period_days, RestockPeriod) else f"{_days(period_days)}D"
    stamp = (now or (lambda: datetime.now(timezone.utc)))()
    return validate_movement(
        Transaction(
            id=new_record_id(),
            item_id=_item_id(item),
            item_name=item.name,
            type=MovementType.SHIFT,
            quantity=final_amount,
            work_shift=WorkShift.ADMIN,
            item_condition=ItemCondition.GOOD,
            from_location=source_location,
            to_location=target_location,
            date=stamp.isoformat(),
            performed_by=actor,
            notes=f"Automatic restock (period {label} x{safety_factor})",
        )
    )


def _item_id(item: Stocked) -> str | None:
    if isinstance(item, LocationStock):
        return item.item_id
    if isinstance(item, InventoryItem):
        return item.id
    return getattr(item, "id", None)


def restock_plan(
    snapshots: Sequence[InventoryItem],
    location: str,
    period: RestockPeriod | int = RestockPeriod.WEEK,
    *,
    primary_location: str = PRIMARY_LOCATION,
    safety_factor: int = DEFAULT_SAFETY_FACTOR,
) -> list[RestockLine]:
    lines = []
    for stock in location_view(snapshots, location, primary_location):
        needed = requirement(stock, period, safety_factor=safety_factor)
        lines.append(RestockLine(stock=stock, requirement=needed, status=stock_status(stock.expected_qty, needed.target)))
    return lines
