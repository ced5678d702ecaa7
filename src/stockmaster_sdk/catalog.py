"""Read-only projections over the snapshot set.

The canonical catalog holds one entry per ``(name, size)``. Its
representative row, which decides the unit, threshold and usage shown for the
definition, is the row at the primary location when there is one; otherwise
the first row met in snapshot order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, TypeVar

from .config import PRIMARY_LOCATION
from .models import ApprovalStatus, DefinitionKey, InventoryItem, ItemCondition, MovementType, Transaction, UsageType
from .stock_engine import resolve_definition, target_location


@dataclass(frozen=True)
class LocationQty:
    location: str
    qty: int


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    size: str
    category: str
    unit: str
    usage_type: UsageType
    min_stock_threshold: int
    daily_usage: float
    representative_id: str
    representative_location: str
    total_qty: int
    distribution: tuple[LocationQty, ...]


@dataclass(frozen=True)
class LocationStock:
    name: str
    size: str
    category: str
    unit: str
    usage_type: UsageType
    min_stock_threshold: int
    daily_usage: float
    location: str
    item_id: str
    expected_qty: int
    tracked: bool
    total_inbound: int = 0


@dataclass(frozen=True)
class InventorySummary:
    total_rows: int
    missing: int
    damaged: int
    pending: int
    at_primary: int
    low_stock: int


def representatives(snapshots: Iterable[InventoryItem], primary_location: str = PRIMARY_LOCATION) -> dict[DefinitionKey, InventoryItem]:
    chosen: dict[DefinitionKey, InventoryItem] = {}
    for row in snapshots:
        key = row.definition_key
        if key not in chosen:
            chosen[key] = row
        elif row.location == primary_location and chosen[key].location != primary_location:
            chosen[key] = row
    return chosen


def project(snapshots: Sequence[InventoryItem], primary_location: str = PRIMARY_LOCATION) -> list[CatalogEntry]:
    distribution: dict[DefinitionKey, list[LocationQty]] = {}
    for row in snapshots:
        distribution.setdefault(row.definition_key, []).append(LocationQty(row.location, row.expected_qty))

    entries = []
    for key, row in representatives(snapshots, primary_location).items():
        spread = tuple(distribution[key])
        entries.append(
            CatalogEntry(
                name=row.name,
                size=row.size,
                category=row.category,
                unit=row.unit,
                usage_type=row.usage_type,
                min_stock_threshold=row.min_stock_threshold,
                daily_usage=row.daily_usage,
                representative_id=row.id,
                representative_location=row.location,
                total_qty=sum(part.qty for part in spread),
                distribution=spread,
            )
        )
    return entries


def location_view(
    snapshots: Sequence[InventoryItem],
    location: str,
    primary_location: str = PRIMARY_LOCATION,
    events: Iterable[Transaction] | None = None,
) -> list[LocationStock]:
    """Every catalog definition as seen from one location, untracked ones at zero."""
    inbound = _inbound_totals(snapshots, location, events or ())
    rows_here = {row.definition_key: row for row in snapshots if row.location == location}
    view = []
    for key, definition in representatives(snapshots, primary_location).items():
        here = rows_here.get(key)
        view.append(
            LocationStock(
                name=definition.name,
                size=definition.size,
                category=definition.category,
                unit=definition.unit,
                usage_type=definition.usage_type,
                min_stock_threshold=definition.min_stock_threshold,
                daily_usage=definition.daily_usage,
                location=location,
                item_id=here.id if here else definition.id,
                expected_qty=here.expected_qty if here else 0,
                tracked=here is not None,
                total_inbound=inbound.get(key, 0),
            )
        )
    return view


def _inbound_totals(
    snapshots: Sequence[InventoryItem],
    location: str,
    events: Iterable[Transaction],
) -> dict[DefinitionKey, int]:
    totals: dict[DefinitionKey, int] = {}
    for event in events:
        if event.type is MovementType.OUT:
            continue
        definition = resolve_definition(snapshots, event)
        if definition is None or target_location(event, definition) != location:
            continue
        totals[definition.definition_key] = totals.get(definition.definition_key, 0) + event.quantity
    return totals


_Searchable = TypeVar("_Searchable", InventoryItem, CatalogEntry, LocationStock)


def search(rows: Iterable[_Searchable], term: str) -> list[_Searchable]:
    lower = term.strip().lower()
    if not lower:
        return list(rows)
    return [
        row
        for row in rows
        if lower in row.name.lower() or lower in row.category.lower() or lower in row.size.lower()
    ]


def low_stock(snapshots: Iterable[InventoryItem]) -> list[InventoryItem]:
    """Rows at or under their threshold, emptiest relative to threshold first."""
    flagged = [row for row in snapshots if row.expected_qty <= row.min_stock_threshold]
    return sorted(flagged, key=_fill_ratio)


def _fill_ratio(row: InventoryItem) -> float:
    if row.min_stock_threshold <= 0:
        return float(row.expected_qty)
    return row.expected_qty / row.min_stock_threshold


def summarize(snapshots: Sequence[InventoryItem], primary_location: str = PRIMARY_LOCATION) -> InventorySummary:
    return InventorySummary(
        total_rows=len(snapshots),
        missing=sum(1 for row in snapshots if row.actual_qty < row.expected_qty),
        damaged=sum(1 for row in snapshots if row.condition is not ItemCondition.GOOD),
        pending=sum(1 for row in snapshots if row.status is ApprovalStatus.PENDING),
        at_primary=sum(1 for row in snapshots if row.location == primary_location),
        low_stock=len(low_stock(snapshots)),
    )
