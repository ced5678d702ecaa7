from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

PRIMARY_LOCATION = "Gudang Utama"
DEFAULT_LOCATIONS = ("Gudang Utama", "Gudang Singles", "Gudang Nugget", "Repair", "Pemusnahan")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    env_name: str
    script_url: str | None = None
    primary_location: str = PRIMARY_LOCATION
    locations: tuple[str, ...] = field(default=DEFAULT_LOCATIONS)
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 15.0
    auto_push_delay_seconds: float = 3.0
    pull_interval_seconds: float = 60.0
    safety_factor: int = 2
    data_dir: str | None = None
    verify_ssl: bool = True

    @property
    def normalized_env(self) -> str:
        return self.env_name.lower().strip()

    @property
    def is_offline(self) -> bool:
        return not self.script_url


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _read_locations(primary: str) -> tuple[str, ...]:
    raw = (os.getenv("STOCKMASTER_LOCATIONS") or "").strip()
    if not raw:
        names = list(DEFAULT_LOCATIONS)
    else:
        names = [part.strip() for part in raw.split(",") if part.strip()]
    if primary not in names:
        names.insert(0, primary)
    return tuple(dict.fromkeys(names))


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load config from environment with optional .env override.

    The script URL is optional: without it the client runs offline and the
    sync coordinator reports every push or pull as not configured.
    """
    load_dotenv(env_file)

    env_name = (os.getenv("STOCKMASTER_ENV") or "dev").strip()
    env_key = env_name.upper()

    script_url = (
        (os.getenv(f"STOCKMASTER_SCRIPT_URL_{env_key}") or "").strip()
        or (os.getenv("STOCKMASTER_SCRIPT_URL") or "").strip()
    )
    if script_url:
        _validate(
            script_url.startswith(("http://", "https://")),
            f"Invalid STOCKMASTER_SCRIPT_URL: expected an http(s) URL, got {script_url!r}",
        )

    primary_location = (os.getenv("STOCKMASTER_PRIMARY_LOCATION") or PRIMARY_LOCATION).strip()
    _validate(bool(primary_location), "Invalid STOCKMASTER_PRIMARY_LOCATION: must not be blank")

    connect_timeout_seconds = _read_float("STOCKMASTER_CONNECT_TIMEOUT_SECONDS", "5")
    _validate(
        connect_timeout_seconds > 0,
        f"Invalid STOCKMASTER_CONNECT_TIMEOUT_SECONDS: expected > 0, got {connect_timeout_seconds}",
    )

    read_timeout_seconds = _read_float(
        "STOCKMASTER_READ_TIMEOUT_SECONDS", str(max(15.0, connect_timeout_seconds))
    )
    _validate(
        read_timeout_seconds > 0,
        f"Invalid STOCKMASTER_READ_TIMEOUT_SECONDS: expected > 0, got {read_timeout_seconds}",
    )

    auto_push_delay_seconds = _read_float("STOCKMASTER_AUTO_PUSH_DELAY_SECONDS", "3")
    _validate(
        auto_push_delay_seconds >= 0,
        (
            "Invalid STOCKMASTER_AUTO_PUSH_DELAY_SECONDS: "
            f"expected >= 0, got {auto_push_delay_seconds}"
        ),
    )

    pull_interval_seconds = _read_float("STOCKMASTER_PULL_INTERVAL_SECONDS", "60")
    _validate(
        pull_interval_seconds > 0,
        f"Invalid STOCKMASTER_PULL_INTERVAL_SECONDS: expected > 0, got {pull_interval_seconds}",
    )

    safety_factor = _read_int("STOCKMASTER_SAFETY_FACTOR", "2")
    _validate(safety_factor >= 1, f"Invalid STOCKMASTER_SAFETY_FACTOR: expected >= 1, got {safety_factor}")

    data_dir = (os.getenv("STOCKMASTER_DATA_DIR") or "").strip() or None
    verify_ssl = _coerce_bool(os.getenv("STOCKMASTER_VERIFY_SSL"), True)

    return ClientConfig(
        env_name=env_name,
        script_url=script_url or None,
        primary_location=primary_location,
        locations=_read_locations(primary_location),
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        auto_push_delay_seconds=auto_push_delay_seconds,
        pull_interval_seconds=pull_interval_seconds,
        safety_factor=safety_factor,
        data_dir=data_dir,
        verify_ssl=verify_ssl,
    )
