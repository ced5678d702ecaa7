from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, TypeVar

from pydantic import ValidationError as PydanticValidationError

from .models import InventoryItem, MovementType, Transaction

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationIssue:
    row_index: int | None
    field: str
    reason: str


class ClientValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.issues:
            return "Validation failed"
        issue = self.issues[0]
        location = f"row {issue.row_index}" if issue.row_index is not None else "payload"
        return f"{location} {issue.field}: {issue.reason}"


def normalize_location(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def validate_movement(event: Transaction | Mapping[str, Any], row_index: int | None = None) -> Transaction:
    """Reject malformed movements before they reach the ledger."""
    data = coerce_model(event, Transaction, row_index)
    issues: list[ValidationIssue] = []
    if data.quantity <= 0:
        issues.append(ValidationIssue(row_index, "quantity", "quantity must be a positive integer"))
    if not (data.item_id or data.item_name):
        issues.append(ValidationIssue(row_index, "itemId", "itemId or itemName is required"))
    if not data.performed_by.strip():
        issues.append(ValidationIssue(row_index, "performedBy", "performedBy is required"))

    from_location = normalize_location(data.from_location)
    to_location = normalize_location(data.to_location)
    if data.type is MovementType.SHIFT:
        if from_location is None:
            issues.append(ValidationIssue(row_index, "fromLocation", "fromLocation is required for SHIFT"))
        if to_location is None:
            issues.append(ValidationIssue(row_index, "toLocation", "toLocation is required for SHIFT"))
        if from_location is not None and from_location == to_location:
            issues.append(ValidationIssue(row_index, "toLocation", "toLocation must differ from fromLocation"))
    if issues:
        raise ClientValidationError(issues)
    return data.model_copy(update={"from_location": from_location, "to_location": to_location})


def validate_definition(item: InventoryItem | Mapping[str, Any], row_index: int | None = None) -> InventoryItem:
    data = coerce_model(item, InventoryItem, row_index)
    if not data.name.strip():
        _raise_issue(row_index, "name", "name is required")
    if not data.location.strip():
        _raise_issue(row_index, "location", "location is required")
    if data.expected_qty < 0:
        _raise_issue(row_index, "expectedQty", "expectedQty must not be negative")
    return data


def coerce_model(line: T | Mapping[str, Any], model_type: type[T], row_index: int | None) -> T:
    if isinstance(line, model_type):
        return line
    try:
        return model_type.model_validate(line)
    except PydanticValidationError as exc:
        issue = exc.errors()[0] if exc.errors() else {"loc": ("line",), "msg": "Invalid line"}
        field = ".".join(str(part) for part in issue.get("loc", ("line",)))
        _raise_issue(row_index, field, issue.get("msg", "Invalid line"))
        raise


def _raise_issue(row_index: int | None, field: str, reason: str) -> None:
    raise ClientValidationError([ValidationIssue(row_index=row_index, field=field, reason=reason)])
