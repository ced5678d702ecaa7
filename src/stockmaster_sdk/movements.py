from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from .config import PRIMARY_LOCATION
from .models import InventoryItem, ItemCondition, MovementType, Transaction, WorkShift, new_record_id
from .movement_validation import validate_movement

SINGLES_LOCATION = "Gudang Singles"
NUGGET_LOCATION = "Gudang Nugget"
REPAIR_LOCATION = "Repair"
DESTRUCTION_LOCATION = "Pemusnahan"


class InboundSource(str, Enum):
    SUPPLIER = "SUPPLIER"
    RETURN_SINGLES = "RETURN_SINGLES"
    RETURN_NUGGET = "RETURN_NUGGET"
    FROM_MAIN = "FROM_MAIN"
    OTHER = "OTHER"


class OutboundReason(str, Enum):
    TO_SINGLES = "TO_SINGLES"
    TO_NUGGET = "TO_NUGGET"
    TO_MAIN = "TO_MAIN"
    REPAIR = "REPAIR"
    DESTRUCTION = "DESTRUCTION"
    OTHER = "OTHER"


_INBOUND_ORIGINS = {
    InboundSource.RETURN_SINGLES: SINGLES_LOCATION,
    InboundSource.RETURN_NUGGET: NUGGET_LOCATION,
    InboundSource.FROM_MAIN: PRIMARY_LOCATION,
}

_OUTBOUND_DESTINATIONS = {
    OutboundReason.TO_SINGLES: SINGLES_LOCATION,
    OutboundReason.TO_NUGGET: NUGGET_LOCATION,
    OutboundReason.TO_MAIN: PRIMARY_LOCATION,
    OutboundReason.REPAIR: REPAIR_LOCATION,
    OutboundReason.DESTRUCTION: DESTRUCTION_LOCATION,
}


def _timestamp(now: Callable[[], datetime] | None) -> str:
    return (now or (lambda: datetime.now(timezone.utc)))().isoformat()


def _movement(
    item: InventoryItem,
    movement_type: MovementType,
    quantity: int,
    *,
    actor: str,
    from_location: str | None,
    to_location: str | None,
    notes: str,
    work_shift: WorkShift,
    condition: ItemCondition,
    now: Callable[[], datetime] | None,
) -> Transaction:
    return validate_movement(
        Transaction(
            id=new_record_id(),
            item_id=item.id,
            item_name=item.name,
            type=movement_type,
            quantity=quantity,
            work_shift=work_shift,
            item_condition=condition,
            from_location=from_location,
            to_location=to_location,
            date=_timestamp(now),
            performed_by=actor,
            notes=notes,
        )
    )


def inbound_movement(
    item: InventoryItem,
    location: str,
    quantity: int,
    source: InboundSource,
    *,
    actor: str,
    notes: str | None = None,
    work_shift: WorkShift = WorkShift.SHIFT_1,
    condition: ItemCondition = ItemCondition.GOOD,
    now: Callable[[], datetime] | None = None,
) -> Transaction:
    """Goods arriving at ``location``: receipts are IN, returns and transfers are SHIFT."""
    origin = _INBOUND_ORIGINS.get(source)
    if origin is None:
        # IN has no source location; the origin label travels in the notes.
        label = "Supplier" if source is InboundSource.SUPPLIER else "Other"
        receipt_notes = f"{label}: {notes}" if notes else f"Receipt from {label.lower()} at {location}"
        return _movement(
            item,
            MovementType.IN,
            quantity,
            actor=actor,
            from_location=None,
            to_location=location,
            notes=receipt_notes,
            work_shift=work_shift,
            condition=condition,
            now=now,
        )
    return _movement(
        item,
        MovementType.SHIFT,
        quantity,
        actor=actor,
        from_location=origin,
        to_location=location,
        notes=notes or f"Transfer from {origin} to {location}",
        work_shift=work_shift,
        condition=condition,
        now=now,
    )


def outbound_movement(
    item: InventoryItem,
    location: str,
    quantity: int,
    reason: OutboundReason,
    *,
    actor: str,
    notes: str | None = None,
    work_shift: WorkShift = WorkShift.SHIFT_1,
    condition: ItemCondition = ItemCondition.GOOD,
    now: Callable[[], datetime] | None = None,
) -> Transaction:
    """Goods leaving ``location``: transfers are SHIFT, anything else is OUT."""
    destination = _OUTBOUND_DESTINATIONS.get(reason)
    if destination is None:
        return _movement(
            item,
            MovementType.OUT,
            quantity,
            actor=actor,
            from_location=location,
            to_location=None,
            notes=notes or f"Issued from {location}",
            work_shift=work_shift,
            condition=condition,
            now=now,
        )
    return _movement(
        item,
        MovementType.SHIFT,
        quantity,
        actor=actor,
        from_location=location,
        to_location=destination,
        notes=notes or f"Transfer from {location} to {destination}",
        work_shift=work_shift,
        condition=condition,
        now=now,
    )


def repair_return_movement(
    item: InventoryItem,
    quantity: int,
    *,
    actor: str,
    to_location: str = PRIMARY_LOCATION,
    notes: str = "Returned from repair",
    now: Callable[[], datetime] | None = None,
) -> Transaction:
    return _movement(
        item,
        MovementType.SHIFT,
        quantity,
        actor=actor,
        from_location=REPAIR_LOCATION,
        to_location=to_location,
        notes=notes,
        work_shift=WorkShift.ADMIN,
        condition=ItemCondition.GOOD,
        now=now,
    )


def destruction_movement(
    item: InventoryItem,
    quantity: int,
    *,
    actor: str,
    notes: str = "Destroyed permanently",
    now: Callable[[], datetime] | None = None,
) -> Transaction:
    return _movement(
        item,
        MovementType.OUT,
        quantity,
        actor=actor,
        from_location=DESTRUCTION_LOCATION,
        to_location=None,
        notes=notes,
        work_shift=WorkShift.ADMIN,
        condition=ItemCondition.DAMAGED,
        now=now,
    )
