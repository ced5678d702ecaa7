"""Fold movement events into per-location snapshots.

Every function here is pure: it takes a snapshot sequence and returns a new
one. ``apply_movement`` either produces the complete post-event snapshot set
or raises, so a transfer can never decrement its source without handling its
destination.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from .exceptions import InsufficientStockError, StockError, UnknownItemError
from .models import InventoryItem, MovementType, SnapshotKey, Transaction

logger = logging.getLogger(__name__)

_ROW_NAMESPACE = uuid.UUID("6f1c9d2e-8a47-4b3e-9f0a-51d27c3e8b10")


@dataclass(frozen=True)
class Found:
    index: int
    row: InventoryItem


@dataclass(frozen=True)
class NotFound:
    key: SnapshotKey


Lookup = Found | NotFound


@dataclass(frozen=True)
class MutationResult:
    event: Transaction
    snapshots: tuple[InventoryItem, ...]
    applied: bool
    touched: tuple[str, ...] = ()
    created: InventoryItem | None = None


@dataclass(frozen=True)
class ReplayResult:
    snapshots: tuple[InventoryItem, ...]
    skipped: tuple[tuple[str, str], ...] = field(default=())


def find_row(snapshots: Sequence[InventoryItem], name: str, size: str, location: str) -> Lookup:
    for index, row in enumerate(snapshots):
        if row.name == name and row.size == size and row.location == location:
            return Found(index=index, row=row)
    return NotFound(key=(name, size, location))


def resolve_definition(snapshots: Sequence[InventoryItem], event: Transaction) -> InventoryItem | None:
    """Match by id first, then by name, in snapshot order."""
    if event.item_id:
        for row in snapshots:
            if row.id == event.item_id:
                return row
    if event.item_name:
        for row in snapshots:
            if row.name == event.item_name:
                return row
    return None


def source_location(event: Transaction, definition: InventoryItem) -> str:
    return event.from_location or definition.location


def target_location(event: Transaction, definition: InventoryItem) -> str:
    if event.type is MovementType.OUT:
        return source_location(event, definition)
    return event.to_location or definition.location


def shifted_row_id(event_id: str, location: str) -> str:
    # Derived from the event so a replay recreates the same row id.
    return uuid.uuid5(_ROW_NAMESPACE, f"{event_id}/{location}").hex[:12]


def total_quantity(snapshots: Iterable[InventoryItem], name: str, size: str) -> int:
    return sum(row.expected_qty for row in snapshots if row.name == name and row.size == size)


def apply_movement(snapshots: Sequence[InventoryItem], event: Transaction) -> MutationResult:
    definition = resolve_definition(snapshots, event)
    if definition is None:
        raise UnknownItemError(item_id=event.item_id, item_name=event.item_name)

    rows = list(snapshots)
    stamp = {"last_updated": event.date, "updated_by": event.performed_by}

    if event.type is MovementType.IN:
        lookup = find_row(rows, definition.name, definition.size, target_location(event, definition))
        if isinstance(lookup, NotFound):
            logger.info("IN %s has no row at %s; recorded without stock change", event.id, lookup.key[2])
            return MutationResult(event=event, snapshots=tuple(snapshots), applied=False)
        rows[lookup.index] = lookup.row.model_copy(
            update={"expected_qty": lookup.row.expected_qty + event.quantity, **stamp}
        )
        return MutationResult(event=event, snapshots=tuple(rows), applied=True, touched=(lookup.row.id,))

    source = _decrement(rows, definition, source_location(event, definition), event.quantity, stamp)
    if event.type is MovementType.OUT:
        return MutationResult(event=event, snapshots=tuple(rows), applied=True, touched=(source.id,))

    destination = event.to_location or ""
    lookup = find_row(rows, definition.name, definition.size, destination)
    if isinstance(lookup, Found):
        rows[lookup.index] = lookup.row.model_copy(
            update={"expected_qty": lookup.row.expected_qty + event.quantity, **stamp}
        )
        return MutationResult(
            event=event,
            snapshots=tuple(rows),
            applied=True,
            touched=(source.id, lookup.row.id),
        )

    created = source.model_copy(
        update={
            "id": shifted_row_id(event.id, destination),
            "location": destination,
            "expected_qty": event.quantity,
            "actual_qty": 0,
            "condition": event.item_condition,
            "notes": None,
            **stamp,
        }
    )
    rows.append(created)
    return MutationResult(
        event=event,
        snapshots=tuple(rows),
        applied=True,
        touched=(source.id, created.id),
        created=created,
    )


def _decrement(
    rows: list[InventoryItem],
    definition: InventoryItem,
    location: str,
    quantity: int,
    stamp: dict[str, str],
) -> InventoryItem:
    lookup = find_row(rows, definition.name, definition.size, location)
    available = lookup.row.expected_qty if isinstance(lookup, Found) else 0
    if available < quantity or not isinstance(lookup, Found):
        raise InsufficientStockError(
            name=definition.name,
            size=definition.size,
            location=location,
            available=available,
            requested=quantity,
        )
    updated = lookup.row.model_copy(update={"expected_qty": available - quantity, **stamp})
    rows[lookup.index] = updated
    return updated


def replay(
    baseline: Sequence[InventoryItem],
    events: Iterable[Transaction],
    arrivals: Mapping[int, Sequence[InventoryItem]] | None = None,
) -> ReplayResult:
    """Recompute snapshots from a baseline and the ledger.

    ``arrivals`` maps an event position to rows that joined the set just
    before that event, so events older than a row never touch it. Events the
    baseline can no longer absorb are reported in ``skipped`` rather than
    aborting the replay.
    """
    rows: tuple[InventoryItem, ...] = tuple(baseline)
    pending = dict(arrivals or {})
    skipped: list[tuple[str, str]] = []
    for position, event in enumerate(events):
        rows += tuple(pending.pop(position, ()))
        try:
            rows = apply_movement(rows, event).snapshots
        except StockError as exc:
            logger.warning("replay skipped event %s: %s", event.id, exc)
            skipped.append((event.id, str(exc)))
    for position in sorted(pending):
        rows += tuple(pending[position])
    return ReplayResult(snapshots=rows, skipped=tuple(skipped))
