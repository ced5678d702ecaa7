from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    status_code: int
    raw_payload: object | None = None

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.code}: {self.message}"


class NotFoundError(ApiError):
    pass


class ForbiddenError(ApiError):
    """The script endpoint refused the caller (deployment not shared)."""


class RateLimitError(ApiError):
    """429 throttling from the spreadsheet quota."""


class ServerError(ApiError):
    """5xx script failures."""


class TransportError(ApiError):
    """Network/transport failure before an HTTP response was returned."""


class StockError(Exception):
    """Base for rejected local stock mutations."""


@dataclass
class UnknownItemError(StockError):
    item_id: str | None
    item_name: str | None

    def __str__(self) -> str:
        return f"No item definition matches id={self.item_id!r} name={self.item_name!r}"


@dataclass
class InsufficientStockError(StockError):
    name: str
    size: str
    location: str
    available: int
    requested: int

    def __str__(self) -> str:
        return (
            f"Insufficient stock for {self.name} ({self.size}) at {self.location}: "
            f"available {self.available}, requested {self.requested}"
        )


@dataclass
class DuplicateItemError(StockError):
    name: str
    size: str
    location: str

    def __str__(self) -> str:
        return f"{self.name} ({self.size}) is already tracked at {self.location}"
