from __future__ import annotations

import csv
import io
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from .config import PRIMARY_LOCATION
from .models import ApprovalStatus, InventoryItem, ItemCondition, UsageType, new_record_id

MASTER_COLUMNS = ["name", "category", "size", "unit", "location", "usageType", "minStock", "dailyUsage"]
EXPORT_HEADERS = [
    "name",
    "category",
    "size",
    "location",
    "expectedQty",
    "actualQty",
    "minStockThreshold",
    "dailyUsage",
    "unit",
    "usageType",
    "status",
    "condition",
    "lastUpdated",
    "updatedBy",
    "notes",
]


def _whole(value: str, default: int) -> int:
    try:
        parsed = int(float(value))
    except (TypeError, ValueError):
        return default
    return parsed or default


def parse_master_csv(text: str, *, actor: str = "Import", default_location: str = PRIMARY_LOCATION) -> list[dict[str, Any]]:
    """Read master-data rows in column order; the first line is a header.

    Rows without a name are ignored. Imported rows start at zero stock.
    """
    rows: list[dict[str, Any]] = []
    today = datetime.now().date().isoformat()
    reader = csv.reader(io.StringIO(text))
    next(reader, None)
    for columns in reader:
        cells = [cell.strip() for cell in columns] + [""] * len(MASTER_COLUMNS)
        name, category, size, unit, location, usage_type, min_stock, daily_usage = cells[: len(MASTER_COLUMNS)]
        if not name:
            continue
        rows.append(
            {
                "id": new_record_id(),
                "name": name,
                "category": category or "General",
                "size": size or "-",
                "unit": unit or "pcs",
                "location": location or default_location,
                "expectedQty": 0,
                "actualQty": 0,
                "minStockThreshold": _whole(min_stock, 10),
                "dailyUsage": _whole(daily_usage, 1),
                "usageType": UsageType.SINGLE_USE if usage_type.upper() == "SINGLE_USE" else UsageType.REUSABLE,
                "status": ApprovalStatus.APPROVED,
                "condition": ItemCondition.GOOD,
                "lastUpdated": today,
                "updatedBy": actor,
            }
        )
    return rows


def export_snapshots(
    rows: Iterable[InventoryItem],
    *,
    output_dir: str | Path,
    location: str | None = None,
) -> Path:
    destination = Path(output_dir)
    destination.mkdir(parents=True, exist_ok=True)

    now = datetime.now().astimezone()
    path = destination / f"inventory_{now.strftime('%Y%m%d_%H%M%S')}.csv"

    with path.open("w", newline="", encoding="utf-8-sig") as handle:
        handle.write(f"# timestamp_local: {now.isoformat()}\n")
        handle.write(f"# location: {location or 'ALL'}\n")
        writer = csv.DictWriter(handle, fieldnames=EXPORT_HEADERS, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            if location is not None and row.location != location:
                continue
            writer.writerow({key: ("" if value is None else value) for key, value in row.to_wire().items()})

    return path
