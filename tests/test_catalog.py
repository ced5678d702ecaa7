from __future__ import annotations

from conftest import make_event, make_item
from stockmaster_sdk.catalog import location_view, low_stock, project, representatives, search, summarize
from stockmaster_sdk.models import ItemCondition, MovementType


def _snapshots() -> list:
    return [
        make_item("towel-singles", "Towel", "Gudang Singles", 15, daily_usage=3),
        make_item("towel-main", "Towel", "Gudang Utama", 30, daily_usage=5, min_stock=40),
        make_item("shoe-nugget", "Running Shoes", "Gudang Nugget", 2, size="42", min_stock=15),
        make_item("shoe-repair", "Running Shoes", "Repair", 1, size="42"),
    ]


def test_representative_prefers_primary_location() -> None:
    chosen = representatives(_snapshots())
    assert chosen[("Towel", "-")].id == "towel-main"
    assert chosen[("Running Shoes", "42")].id == "shoe-nugget"


def test_project_sums_distribution_per_definition() -> None:
    entries = {entry.name: entry for entry in project(_snapshots())}
    towel = entries["Towel"]
    assert towel.total_qty == 45
    assert towel.daily_usage == 5
    assert [(part.location, part.qty) for part in towel.distribution] == [
        ("Gudang Singles", 15),
        ("Gudang Utama", 30),
    ]
    assert entries["Running Shoes"].total_qty == 3


def test_location_view_includes_untracked_definitions_at_zero() -> None:
    events = [
        make_event("tr-1", MovementType.IN, 4, item_id="towel-main", to_location="Gudang Nugget"),
        make_event("tr-2", MovementType.OUT, 1, item_id="shoe-nugget"),
    ]
    view = {row.name: row for row in location_view(_snapshots(), "Gudang Nugget", events=events)}
    assert view["Towel"].tracked is False
    assert view["Towel"].expected_qty == 0
    assert view["Towel"].item_id == "towel-main"
    assert view["Towel"].total_inbound == 4
    assert view["Running Shoes"].tracked is True
    assert view["Running Shoes"].total_inbound == 0


def test_search_matches_name_category_and_size() -> None:
    rows = _snapshots()
    assert {row.id for row in search(rows, "42")} == {"shoe-nugget", "shoe-repair"}
    assert len(search(rows, "  ")) == 4
    assert search(project(rows), "towel")[0].name == "Towel"


def test_low_stock_orders_by_fill_ratio() -> None:
    flagged = low_stock(_snapshots())
    assert [row.id for row in flagged] == ["shoe-nugget", "towel-main"]


def test_summarize_counts() -> None:
    rows = _snapshots()
    rows[0] = rows[0].model_copy(update={"condition": ItemCondition.DAMAGED, "actual_qty": 10})
    summary = summarize(rows)
    assert summary.total_rows == 4
    assert summary.damaged == 1
    assert summary.missing == 1
    assert summary.pending == 4
    assert summary.at_primary == 1
    assert summary.low_stock == 2
