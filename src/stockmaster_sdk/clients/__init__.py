from .base import BaseClient
from .sheet_client import SheetClient

__all__ = ["BaseClient", "SheetClient"]
