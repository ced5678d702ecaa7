from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

SDK_SRC = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SDK_SRC))

from stockmaster_sdk.inventory_store import InventoryStore  # noqa: E402
from stockmaster_sdk.models import InventoryItem, MovementType, Transaction, User, UserRole  # noqa: E402
from stockmaster_sdk.persistence import MemoryRepository  # noqa: E402

_STOCKMASTER_ENV_KEYS = (
    "STOCKMASTER_ENV",
    "STOCKMASTER_SCRIPT_URL",
    "STOCKMASTER_SCRIPT_URL_DEV",
    "STOCKMASTER_PRIMARY_LOCATION",
    "STOCKMASTER_LOCATIONS",
    "STOCKMASTER_CONNECT_TIMEOUT_SECONDS",
    "STOCKMASTER_READ_TIMEOUT_SECONDS",
    "STOCKMASTER_AUTO_PUSH_DELAY_SECONDS",
    "STOCKMASTER_PULL_INTERVAL_SECONDS",
    "STOCKMASTER_SAFETY_FACTOR",
    "STOCKMASTER_DATA_DIR",
    "STOCKMASTER_VERIFY_SSL",
)


class FixedClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 20, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def make_item(
    item_id: str,
    name: str,
    location: str,
    qty: int,
    *,
    size: str = "-",
    daily_usage: float = 0,
    min_stock: int = 0,
) -> InventoryItem:
    return InventoryItem(
        id=item_id,
        name=name,
        size=size,
        location=location,
        expected_qty=qty,
        actual_qty=qty,
        daily_usage=daily_usage,
        min_stock_threshold=min_stock,
    )


def make_event(
    event_id: str,
    movement_type: MovementType,
    quantity: int,
    *,
    item_id: str | None = None,
    item_name: str | None = None,
    from_location: str | None = None,
    to_location: str | None = None,
    actor: str = "Staff John",
    date: str = "2024-03-20T08:00:00+00:00",
) -> Transaction:
    return Transaction(
        id=event_id,
        item_id=item_id,
        item_name=item_name,
        type=movement_type,
        quantity=quantity,
        from_location=from_location,
        to_location=to_location,
        date=date,
        performed_by=actor,
    )


@pytest.fixture(autouse=True)
def _clean_stockmaster_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _STOCKMASTER_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def repository() -> MemoryRepository:
    return MemoryRepository()


@pytest.fixture
def towel_store(repository: MemoryRepository, clock: FixedClock) -> InventoryStore:
    return InventoryStore(
        repository,
        seed=[make_item("towel-main", "Towel", "Gudang Utama", 50, daily_usage=5, min_stock=10)],
        clock=clock,
    )


@pytest.fixture
def leader() -> User:
    return User(id="1", name="Default Leader", username="admin", role=UserRole.LEADER)
