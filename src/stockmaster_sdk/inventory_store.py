from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

from . import persistence
from .catalog import CatalogEntry, InventorySummary, LocationStock, location_view, project, summarize
from .config import PRIMARY_LOCATION, ClientConfig
from .exceptions import DuplicateItemError, StockError
from .ledger import Ledger
from .models import ApprovalStatus, InventoryItem, Transaction, new_record_id
from .movement_validation import ClientValidationError, ValidationIssue, coerce_model, validate_definition, validate_movement
from .observability import get_logger, log_action
from .restock import (
    DEFAULT_SAFETY_FACTOR,
    RestockLine,
    RestockPeriod,
    RestockRequirement,
    Stocked,
    build_replenishment,
    requirement,
    restock_plan,
)
from .stock_engine import MutationResult, apply_movement, replay

_LOCKED_FIELDS = {"id", "expected_qty", "name", "size", "location"}


class ChangeOrigin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class ChangeNotice:
    origin: ChangeOrigin
    action: str
    snapshots: tuple[InventoryItem, ...]


Listener = Callable[[ChangeNotice], None]


@dataclass(frozen=True)
class QuantityDrift:
    name: str
    size: str
    location: str
    recorded_qty: int
    ledger_qty: int


@dataclass(frozen=True)
class ReconcileReport:
    drift: tuple[QuantityDrift, ...] = ()
    skipped_events: tuple[tuple[str, str], ...] = ()
    untracked: tuple[str, ...] = ()

    @property
    def clean(self) -> bool:
        return not self.drift and not self.skipped_events


@dataclass(frozen=True)
class ImportSummary:
    added: tuple[InventoryItem, ...] = field(default=())
    skipped: tuple[str, ...] = field(default=())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InventoryStore:
    """Single writer of the snapshot set and owner of the movement ledger.

    State is loaded from the repository on construction and written back on
    every change. Listeners are told about each snapshot change together with
    its origin, so the sync layer can tell local edits from applied pulls.
    """

    def __init__(
        self,
        repository: persistence.StateRepository,
        *,
        primary_location: str = PRIMARY_LOCATION,
        safety_factor: int = DEFAULT_SAFETY_FACTOR,
        seed: Sequence[InventoryItem] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self.primary_location = primary_location
        self.safety_factor = safety_factor
        self._clock = clock or _utc_now
        self._logger = get_logger("stockmaster.store")
        self._listeners: list[Listener] = []

        stored_items = repository.load(persistence.ITEMS)
        if stored_items is None:
            self._snapshots = list(seed)
        else:
            self._snapshots = [coerce_model(row, InventoryItem, index) for index, row in enumerate(stored_items)]
        self._ledger = Ledger.from_wire(repository.load(persistence.TRANSACTIONS, []) or [])

        self._arrivals: dict[str, int] = {}
        stored_baseline = repository.load(persistence.BASELINE)
        if stored_baseline is None:
            self._baseline = list(self._snapshots)
            self._baseline_offset = len(self._ledger)
        else:
            self._baseline = [coerce_model(row, InventoryItem, index) for index, row in enumerate(stored_baseline)]
            self._baseline_offset = int(repository.load(persistence.BASELINE_OFFSET, 0) or 0)
            stored_arrivals = repository.load(persistence.BASELINE_ARRIVALS, {}) or {}
            self._arrivals = {str(item_id): int(offset) for item_id, offset in stored_arrivals.items()}

    @classmethod
    def from_config(cls, config: ClientConfig, repository: persistence.StateRepository | None = None) -> "InventoryStore":
        return cls(
            repository or persistence.JsonFileRepository(data_dir=config.data_dir),
            primary_location=config.primary_location,
            safety_factor=config.safety_factor,
        )

    @property
    def snapshots(self) -> tuple[InventoryItem, ...]:
        return tuple(self._snapshots)

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, item_id: str) -> InventoryItem | None:
        return next((row for row in self._snapshots if row.id == item_id), None)

    # Ledger operations

    def append(self, event: Transaction | Mapping[str, Any]) -> MutationResult:
        """Validate, fold and record one movement.

        Rejected movements (malformed, unknown item, would-go-negative) leave
        both the ledger and the snapshots untouched.
        """
        try:
            movement = validate_movement(event)
            result = apply_movement(self._snapshots, movement)
            self._ledger.append(movement)
        except (ClientValidationError, StockError) as exc:
            actor = event.performed_by if isinstance(event, Transaction) else None
            log_action(self._logger, "store", "append", actor, "rejected", reason=str(exc))
            raise
        self._snapshots = list(result.snapshots)
        self._save_ledger()
        log_action(
            self._logger,
            "store",
            "append",
            movement.performed_by,
            "applied" if result.applied else "recorded",
            event_id=movement.id,
            type=movement.type.value,
            quantity=movement.quantity,
        )
        if result.applied:
            self._save_items()
            self._notify(ChangeOrigin.LOCAL, "append")
        return result

    def reconcile(self) -> ReconcileReport:
        """Recompute quantities from the baseline plus the ledger and repair drift."""
        initial: list[InventoryItem] = []
        arrivals: dict[int, list[InventoryItem]] = {}
        for row in self._baseline:
            joined = self._arrivals.get(row.id, self._baseline_offset)
            if joined > self._baseline_offset:
                arrivals.setdefault(joined - self._baseline_offset, []).append(row)
            else:
                initial.append(row)
        replayed = replay(initial, self._ledger.since(self._baseline_offset), arrivals)
        live_by_key = {row.key: row for row in self._snapshots}
        replayed_keys = set()
        merged: list[InventoryItem] = []
        drift: list[QuantityDrift] = []
        for row in replayed.snapshots:
            replayed_keys.add(row.key)
            live = live_by_key.get(row.key)
            if live is None:
                if row.expected_qty != 0:
                    drift.append(QuantityDrift(row.name, row.size, row.location, 0, row.expected_qty))
                    merged.append(row)
                continue
            if live.expected_qty != row.expected_qty:
                drift.append(QuantityDrift(row.name, row.size, row.location, live.expected_qty, row.expected_qty))
                merged.append(live.model_copy(update={"expected_qty": row.expected_qty}))
            else:
                merged.append(live)
        untracked = [row for row in self._snapshots if row.key not in replayed_keys]
        merged.extend(untracked)

        report = ReconcileReport(
            drift=tuple(drift),
            skipped_events=replayed.skipped,
            untracked=tuple(row.id for row in untracked),
        )
        if drift:
            self._snapshots = merged
            self._save_items()
            self._notify(ChangeOrigin.LOCAL, "reconcile")
        log_action(self._logger, "store", "reconcile", None, "clean" if report.clean else "repaired", drift=len(drift))
        return report

    # Definition management

    def register_item(self, item: InventoryItem | Mapping[str, Any], *, actor: str) -> InventoryItem:
        row = self._prepare_definition(item, actor)
        self._snapshots.append(row)
        self._add_to_baseline(row)
        self._save_items()
        log_action(self._logger, "store", "register", actor, "applied", item_id=row.id)
        self._notify(ChangeOrigin.LOCAL, "register")
        return row

    def import_items(self, items: Iterable[InventoryItem | Mapping[str, Any]], *, actor: str) -> ImportSummary:
        added: list[InventoryItem] = []
        skipped: list[str] = []
        for index, item in enumerate(items):
            try:
                row = self._prepare_definition(item, actor, row_index=index)
            except (DuplicateItemError, ClientValidationError) as exc:
                skipped.append(str(exc))
                continue
            self._snapshots.append(row)
            self._add_to_baseline(row)
            added.append(row)
        if added:
            self._save_items()
            self._notify(ChangeOrigin.LOCAL, "import")
        log_action(self._logger, "store", "import", actor, "applied", added=len(added), skipped=len(skipped))
        return ImportSummary(added=tuple(added), skipped=tuple(skipped))

    def update_item(self, item_id: str, changes: Mapping[str, Any], *, actor: str) -> InventoryItem:
        """Edit counted quantity, approval, condition, notes or definition details.

        Quantities on hand only change through movements; identity fields are fixed.
        """
        index = self._index_of(item_id)
        current = self._snapshots[index]
        payload = {**current.model_dump(), **dict(changes)}
        updated = coerce_model(payload, InventoryItem, None)
        locked = sorted(name for name in _LOCKED_FIELDS if getattr(updated, name) != getattr(current, name))
        if locked:
            raise ClientValidationError(
                [ValidationIssue(None, name, "field cannot be edited directly") for name in locked]
            )
        updated = updated.model_copy(update={"last_updated": self._clock().isoformat(), "updated_by": actor})
        self._snapshots[index] = updated
        for position, row in enumerate(self._baseline):
            if row.id == item_id:
                self._baseline[position] = updated.model_copy(update={"expected_qty": row.expected_qty})
        self._save_items()
        log_action(self._logger, "store", "update", actor, "applied", item_id=item_id, fields=sorted(changes))
        self._notify(ChangeOrigin.LOCAL, "update")
        return updated

    def approve(self, item_id: str, status: ApprovalStatus, *, actor: str) -> InventoryItem:
        return self.update_item(item_id, {"status": status}, actor=actor)

    def remove_item(self, item_id: str, *, actor: str) -> InventoryItem:
        index = self._index_of(item_id)
        row = self._snapshots[index]
        if row.expected_qty != 0:
            raise ClientValidationError(
                [ValidationIssue(None, "expectedQty", "move or issue remaining stock before removing the row")]
            )
        del self._snapshots[index]
        self._baseline = [candidate for candidate in self._baseline if candidate.id != item_id]
        self._arrivals.pop(item_id, None)
        self._save_items()
        log_action(self._logger, "store", "remove", actor, "applied", item_id=item_id)
        self._notify(ChangeOrigin.LOCAL, "remove")
        return row

    def replace_snapshots(self, rows: Sequence[InventoryItem], *, origin: ChangeOrigin = ChangeOrigin.REMOTE) -> None:
        """Swap in a whole snapshot set; the new set becomes the reconcile baseline."""
        self._snapshots = list(rows)
        self._baseline = list(rows)
        self._baseline_offset = len(self._ledger)
        self._arrivals = {}
        keys = [row.key for row in rows]
        if len(keys) != len(set(keys)):
            self._logger.warning("replacement snapshot set repeats (name, size, location) keys")
        self._save_items()
        self._notify(origin, "replace")

    # Read side

    def project(self) -> list[CatalogEntry]:
        return project(self._snapshots, self.primary_location)

    def location_view(self, location: str) -> list[LocationStock]:
        return location_view(self._snapshots, location, self.primary_location, self._ledger.events)

    def summary(self) -> InventorySummary:
        return summarize(self._snapshots, self.primary_location)

    def requirement(self, item: Stocked, period_days: RestockPeriod | int) -> RestockRequirement:
        return requirement(item, period_days, safety_factor=self.safety_factor)

    def restock_plan(self, location: str, period: RestockPeriod | int = RestockPeriod.WEEK) -> list[RestockLine]:
        return restock_plan(
            self._snapshots,
            location,
            period,
            primary_location=self.primary_location,
            safety_factor=self.safety_factor,
        )

    def replenish(
        self,
        item: Stocked,
        target_location: str,
        amount: int | None = None,
        *,
        actor: str,
        period: RestockPeriod | int = RestockPeriod.WEEK,
    ) -> MutationResult | None:
        movement = build_replenishment(
            item,
            target_location,
            amount,
            actor=actor,
            period_days=period,
            source_location=self.primary_location,
            safety_factor=self.safety_factor,
            now=self._clock,
        )
        if movement is None:
            return None
        return self.append(movement)

    # Internals

    def _prepare_definition(
        self,
        item: InventoryItem | Mapping[str, Any],
        actor: str,
        row_index: int | None = None,
    ) -> InventoryItem:
        if isinstance(item, Mapping) and not item.get("id"):
            item = {**item, "id": new_record_id()}
        row = validate_definition(item, row_index)
        if any(existing.key == row.key for existing in self._snapshots):
            raise DuplicateItemError(name=row.name, size=row.size, location=row.location)
        if any(existing.id == row.id for existing in self._snapshots):
            row = row.model_copy(update={"id": new_record_id()})
        return row.model_copy(update={"last_updated": self._clock().isoformat(), "updated_by": actor})

    def _add_to_baseline(self, row: InventoryItem) -> None:
        # Ledger events recorded before the row existed must not replay into it.
        self._baseline.append(row)
        self._arrivals[row.id] = len(self._ledger)

    def _index_of(self, item_id: str) -> int:
        for index, row in enumerate(self._snapshots):
            if row.id == item_id:
                return index
        raise ClientValidationError([ValidationIssue(None, "id", f"unknown item {item_id}")])

    def _notify(self, origin: ChangeOrigin, action: str) -> None:
        notice = ChangeNotice(origin=origin, action=action, snapshots=self.snapshots)
        for listener in list(self._listeners):
            listener(notice)

    def _save_items(self) -> None:
        self._repository.save(persistence.ITEMS, [row.to_wire() for row in self._snapshots])
        self._repository.save(persistence.BASELINE, [row.to_wire() for row in self._baseline])
        self._repository.save(persistence.BASELINE_OFFSET, self._baseline_offset)
        self._repository.save(persistence.BASELINE_ARRIVALS, self._arrivals)

    def _save_ledger(self) -> None:
        self._repository.save(persistence.TRANSACTIONS, self._ledger.to_wire())
