from .access_control import ROLE_PERMISSIONS, PermissionDecision, RolePermissions, can_open_view, permissions_for
from .catalog import CatalogEntry, InventorySummary, LocationQty, LocationStock, low_stock, search
from .clients import SheetClient
from .config import DEFAULT_LOCATIONS, PRIMARY_LOCATION, ClientConfig, ConfigError, load_config
from .exceptions import (
    ApiError,
    DuplicateItemError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    RateLimitError,
    ServerError,
    StockError,
    TransportError,
    UnknownItemError,
)
from .http_client import HttpClient
from .inventory_store import ChangeNotice, ChangeOrigin, ImportSummary, InventoryStore, QuantityDrift, ReconcileReport
from .ledger import Ledger
from .master_import import export_snapshots, parse_master_csv
from .models import (
    ApprovalStatus,
    AuditLogEntry,
    InventoryItem,
    ItemCondition,
    MovementType,
    SheetConfig,
    Transaction,
    UsageType,
    User,
    UserRole,
    WorkShift,
)
from .movement_validation import ClientValidationError, ValidationIssue, validate_definition, validate_movement
from .movements import (
    InboundSource,
    OutboundReason,
    destruction_movement,
    inbound_movement,
    outbound_movement,
    repair_return_movement,
)
from .persistence import JsonFileRepository, MemoryRepository, Preferences, StateRepository
from .restock import RestockLine, RestockPeriod, RestockRequirement, StockStatus, build_replenishment, requirement, stock_status
from .stock_engine import Found, MutationResult, NotFound, apply_movement, find_row, replay
from .sync_coordinator import SyncCoordinator, SyncDirection, SyncOutcome, SyncReason, SyncStatus
from .users import DEFAULT_LEADER, UserDirectory

__version__ = "0.4.0"

__all__ = [
    "ApiError",
    "ApprovalStatus",
    "AuditLogEntry",
    "CatalogEntry",
    "ChangeNotice",
    "ChangeOrigin",
    "ClientConfig",
    "ClientValidationError",
    "ConfigError",
    "DEFAULT_LEADER",
    "DEFAULT_LOCATIONS",
    "DuplicateItemError",
    "ForbiddenError",
    "Found",
    "HttpClient",
    "ImportSummary",
    "InboundSource",
    "InsufficientStockError",
    "InventoryItem",
    "InventoryStore",
    "InventorySummary",
    "ItemCondition",
    "JsonFileRepository",
    "Ledger",
    "LocationQty",
    "LocationStock",
    "MemoryRepository",
    "MovementType",
    "MutationResult",
    "NotFound",
    "NotFoundError",
    "OutboundReason",
    "PRIMARY_LOCATION",
    "PermissionDecision",
    "Preferences",
    "QuantityDrift",
    "ROLE_PERMISSIONS",
    "RateLimitError",
    "ReconcileReport",
    "RestockLine",
    "RestockPeriod",
    "RestockRequirement",
    "RolePermissions",
    "ServerError",
    "SheetClient",
    "SheetConfig",
    "StateRepository",
    "StockError",
    "StockStatus",
    "SyncCoordinator",
    "SyncDirection",
    "SyncOutcome",
    "SyncReason",
    "SyncStatus",
    "Transaction",
    "TransportError",
    "UnknownItemError",
    "UsageType",
    "User",
    "UserDirectory",
    "UserRole",
    "ValidationIssue",
    "WorkShift",
    "__version__",
    "apply_movement",
    "can_open_view",
    "destruction_movement",
    "export_snapshots",
    "find_row",
    "inbound_movement",
    "load_config",
    "low_stock",
    "outbound_movement",
    "parse_master_csv",
    "permissions_for",
    "repair_return_movement",
    "replay",
    "requirement",
    "build_replenishment",
    "search",
    "stock_status",
    "validate_definition",
    "validate_movement",
]
