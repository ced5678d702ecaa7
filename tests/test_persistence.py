from __future__ import annotations

import pytest

from stockmaster_sdk import persistence
from stockmaster_sdk.persistence import JsonFileRepository, MemoryRepository, Preferences


def test_json_file_repository_round_trip(tmp_path) -> None:
    repo = JsonFileRepository(data_dir=str(tmp_path))
    repo.save(persistence.ITEMS, [{"id": "1", "name": "Handuk"}])

    assert (tmp_path / "stock_items.json").exists()
    assert repo.load(persistence.ITEMS) == [{"id": "1", "name": "Handuk"}]
    repo.clear(persistence.ITEMS)
    assert repo.load(persistence.ITEMS, []) == []


def test_unreadable_file_falls_back_to_default(tmp_path) -> None:
    (tmp_path / "sheet_config.json").write_text("{not json", encoding="utf-8")
    repo = JsonFileRepository(data_dir=str(tmp_path))
    assert repo.load(persistence.SHEET_CONFIG, {"scriptUrl": ""}) == {"scriptUrl": ""}


def test_memory_repository_stores_copies() -> None:
    repo = MemoryRepository()
    value = {"rows": [1, 2]}
    repo.save("k", value)
    value["rows"].append(3)
    assert repo.load("k") == {"rows": [1, 2]}


def test_preferences_defaults_and_validation() -> None:
    prefs = Preferences(MemoryRepository())
    assert (prefs.theme, prefs.language, prefs.active_view) == ("light", "id", "dashboard")

    prefs.theme = "dark"
    prefs.language = "en"
    prefs.active_view = "restock"
    assert (prefs.theme, prefs.language, prefs.active_view) == ("dark", "en", "restock")

    with pytest.raises(ValueError):
        prefs.theme = "neon"


def test_preferences_ignore_corrupt_values() -> None:
    repo = MemoryRepository()
    repo.save(persistence.THEME, "sepia")
    assert Preferences(repo).theme == "light"
