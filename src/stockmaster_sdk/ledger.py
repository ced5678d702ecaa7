from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

from .models import MovementType, Transaction
from .movement_validation import ClientValidationError, ValidationIssue, coerce_model


class Ledger:
    """Append-only sequence of movement events.

    Entries are frozen models and the sequence is only ever extended; callers
    get tuples, never the backing list.
    """

    def __init__(self, events: Iterable[Transaction] = ()) -> None:
        self._events: list[Transaction] = []
        self._ids: set[str] = set()
        for event in events:
            self.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(tuple(self._events))

    @property
    def events(self) -> tuple[Transaction, ...]:
        return tuple(self._events)

    def append(self, event: Transaction) -> int:
        """Append an event and return its offset."""
        if event.id in self._ids:
            raise ClientValidationError([ValidationIssue(None, "id", f"event {event.id} is already recorded")])
        self._events.append(event)
        self._ids.add(event.id)
        return len(self._events) - 1

    def since(self, offset: int) -> tuple[Transaction, ...]:
        return tuple(self._events[max(offset, 0):])

    def search(self, term: str = "") -> list[Transaction]:
        lower = term.strip().lower()
        matches = [
            event
            for event in self._events
            if not lower
            or lower in (event.item_name or "").lower()
            or lower in (event.notes or "").lower()
            or lower in event.performed_by.lower()
            or lower in event.work_shift.value.lower()
        ]
        return sorted(matches, key=lambda event: event.date, reverse=True)

    def history_for(self, item_name: str, location: str | None = None) -> list[Transaction]:
        """Movements of one item, newest first; narrowed to ones touching a location if given."""
        rows = []
        for event in self._events:
            if event.item_name != item_name:
                continue
            if location is not None and event.type is MovementType.SHIFT:
                if location not in (event.from_location, event.to_location):
                    continue
            rows.append(event)
        return sorted(rows, key=lambda event: event.date, reverse=True)

    def to_wire(self) -> list[dict[str, Any]]:
        return [event.to_wire() for event in self._events]

    @classmethod
    def from_wire(cls, rows: Iterable[Mapping[str, Any]]) -> "Ledger":
        return cls(coerce_model(row, Transaction, index) for index, row in enumerate(rows))
