from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

ITEMS = "stock_items"
TRANSACTIONS = "stock_transactions"
USERS = "stock_users"
CURRENT_USER = "stock_current_user"
THEME = "stock_theme"
LANG = "stock_lang"
SHEET_CONFIG = "sheet_config"
ACTIVE_TAB = "stock_active_tab"
BASELINE = "stock_baseline"
BASELINE_OFFSET = "stock_baseline_offset"
BASELINE_ARRIVALS = "stock_baseline_arrivals"

THEMES = ("light", "dark")
LANGUAGES = ("id", "en")


class StateRepository(Protocol):
    def load(self, key: str, default: Any = None) -> Any: ...

    def save(self, key: str, value: Any) -> None: ...

    def clear(self, key: str) -> None: ...


@dataclass
class JsonFileRepository:
    """One JSON document per key under the user data directory."""

    app_name: str = "stockmaster"
    data_dir: str | None = None

    def _path(self, key: str) -> Path:
        base = Path(self.data_dir) if self.data_dir else Path(user_data_dir(self.app_name, "StockMaster"))
        base.mkdir(parents=True, exist_ok=True)
        return base / f"{key}.json"

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")

    def load(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError):
            logger.warning("unreadable state file %s; using default", path)
            return default

    def clear(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


@dataclass
class MemoryRepository:
    data: dict[str, str] = field(default_factory=dict)

    def save(self, key: str, value: Any) -> None:
        self.data[key] = json.dumps(value)

    def load(self, key: str, default: Any = None) -> Any:
        raw = self.data.get(key)
        return default if raw is None else json.loads(raw)

    def clear(self, key: str) -> None:
        self.data.pop(key, None)


@dataclass
class Preferences:
    repository: StateRepository

    @property
    def theme(self) -> str:
        value = self.repository.load(THEME, "light")
        return value if value in THEMES else "light"

    @theme.setter
    def theme(self, value: str) -> None:
        if value not in THEMES:
            raise ValueError(f"Unsupported theme: {value}")
        self.repository.save(THEME, value)

    @property
    def language(self) -> str:
        value = self.repository.load(LANG, "id")
        return value if value in LANGUAGES else "id"

    @language.setter
    def language(self, value: str) -> None:
        if value not in LANGUAGES:
            raise ValueError(f"Unsupported language: {value}")
        self.repository.save(LANG, value)

    @property
    def active_view(self) -> str:
        return self.repository.load(ACTIVE_TAB, "dashboard") or "dashboard"

    @active_view.setter
    def active_view(self, value: str) -> None:
        self.repository.save(ACTIVE_TAB, value)
