from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from pydantic import ValidationError

from ..models import AuditLogEntry, InventoryItem
from .base import BaseClient

logger = logging.getLogger(__name__)


@dataclass
class SheetClient(BaseClient):
    """Spreadsheet script endpoint: GET returns the row array, POST takes actions."""

    def fetch_rows(self) -> list[InventoryItem] | None:
        """Return the remote snapshot set, or None when the body is not a row array.

        Non-2xx responses and transport failures raise.
        """
        payload = self._request("GET", operation="pull")
        if not isinstance(payload, list):
            return None
        rows: list[InventoryItem] = []
        for index, raw in enumerate(payload):
            if not isinstance(raw, dict):
                logger.warning("remote row %s is not an object; dropped", index)
                continue
            try:
                rows.append(InventoryItem.model_validate(raw))
            except ValidationError as exc:
                logger.warning("remote row %s is malformed; dropped: %s", index, exc.errors()[0].get("msg"))
        return rows

    def push(self, rows: Sequence[InventoryItem], log: AuditLogEntry) -> None:
        body = {
            "action": "sync",
            "payload": [row.to_wire() for row in rows],
            "log": log.to_wire(),
        }
        self._request("POST", json_body=body, parse_response=False, operation="push")

    def log_only(self, log: AuditLogEntry) -> None:
        body: dict[str, Any] = {"action": "log_only", "log": log.to_wire()}
        self._request("POST", json_body=body, parse_response=False, operation="log")
