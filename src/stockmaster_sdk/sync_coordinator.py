"""Push/pull coordination between the local store and the spreadsheet mirror.

All state here is touched from the event loop thread only. Network calls run
in worker threads via ``asyncio.to_thread`` and their results are applied back
on the loop, so the store never sees concurrent writers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Protocol, Sequence
from urllib.parse import parse_qs, urlparse

from . import persistence
from .clients.sheet_client import SheetClient
from .config import ClientConfig
from .exceptions import ApiError, ForbiddenError, NotFoundError, RateLimitError, ServerError, TransportError
from .http_client import HttpClient
from .inventory_store import ChangeNotice, ChangeOrigin, InventoryStore
from .models import AuditLogEntry, InventoryItem, SheetConfig, User
from .observability import get_logger, log_action
from .scheduling import Debouncer, PeriodicTask


class SyncDirection(str, Enum):
    PUSH = "push"
    PULL = "pull"


class SyncStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    APPLIED = "APPLIED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class SyncReason(str, Enum):
    EMPTY_REMOTE = "empty_remote"
    NO_DATA = "no_data"
    STALE = "stale"
    PULL_LOCKED = "pull_locked"
    IN_FLIGHT = "in_flight"
    NOT_CONFIGURED = "not_configured"
    NO_ACTOR = "no_actor"


class AuditActivity(str, Enum):
    PUSH = "PUSH"
    PULL = "PULL"
    PULL_PROTECTED = "PULL_PROTECTED"
    PULL_ERROR = "PULL_ERROR"
    PUSH_ERROR = "PUSH_ERROR"


def _failure_message(exc: ApiError) -> str:
    if isinstance(exc, ForbiddenError):
        hint = "the script deployment is not shared with this account"
    elif isinstance(exc, NotFoundError):
        hint = "check the script URL"
    elif isinstance(exc, RateLimitError):
        hint = "spreadsheet quota reached; the next scheduled sync tries again"
    elif isinstance(exc, ServerError):
        hint = "the script failed; see its execution log"
    elif isinstance(exc, TransportError):
        hint = "the script endpoint is unreachable"
    else:
        return str(exc)
    return f"{exc} ({hint})"


@dataclass(frozen=True)
class SyncOutcome:
    direction: SyncDirection
    status: SyncStatus
    reason: SyncReason | None = None
    message: str = ""
    synced_at: datetime | None = None
    rows: int = 0

    @property
    def ok(self) -> bool:
        return self.status in {SyncStatus.SUCCEEDED, SyncStatus.APPLIED}


class SheetTransport(Protocol):
    def fetch_rows(self) -> list[InventoryItem] | None: ...

    def push(self, rows: Sequence[InventoryItem], log: AuditLogEntry) -> None: ...

    def log_only(self, log: AuditLogEntry) -> None: ...


TransportFactory = Callable[[str], SheetTransport]
OutcomeListener = Callable[[SyncOutcome], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncCoordinator:
    def __init__(
        self,
        store: InventoryStore,
        repository: persistence.StateRepository,
        *,
        config: ClientConfig | None = None,
        transport_factory: TransportFactory | None = None,
        clock: Callable[[], datetime] | None = None,
        on_outcome: OutcomeListener | None = None,
        actor: User | None = None,
    ) -> None:
        self._store = store
        self._repository = repository
        self._config = config or ClientConfig(env_name="dev")
        self._transport_factory = transport_factory or self._default_transport
        self._clock = clock or _utc_now
        self._on_outcome = on_outcome
        self._actor = actor
        self._logger = get_logger("stockmaster.sync")

        stored = repository.load(persistence.SHEET_CONFIG)
        if stored is None:
            url = self._config.script_url or ""
            self._settings = SheetConfig(script_url=url, is_connected=bool(url))
        else:
            self._settings = SheetConfig.model_validate(stored)

        self._transport: SheetTransport | None = None
        self._transport_url: str | None = None
        self._lock = asyncio.Lock()
        self._pulling = False
        self._generation = 0
        self._running = False
        self.last_synced_at: datetime | None = None

        self._debouncer = Debouncer(self._config.auto_push_delay_seconds, self._auto_push)
        self._poller = PeriodicTask(self._config.pull_interval_seconds, self._periodic_pull)
        self._unsubscribe = store.subscribe(self._on_store_change)

    @property
    def settings(self) -> SheetConfig:
        return self._settings

    @property
    def actor(self) -> User | None:
        return self._actor

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pulling(self) -> bool:
        return self._pulling

    @property
    def push_pending(self) -> bool:
        return self._debouncer.pending

    def set_actor(self, user: User | None) -> None:
        self._actor = user

    # Lifecycle

    def start(self) -> None:
        """Begin periodic pulls and debounced auto-push; needs a running loop."""
        self._running = True
        self._poller.start()

    async def stop(self) -> None:
        self._running = False
        await self._debouncer.aclose()
        await self._poller.stop()

    async def close(self) -> None:
        await self.stop()
        self._unsubscribe()

    # Settings

    def configure(self, **changes: Any) -> SheetConfig:
        updated = SheetConfig.model_validate({**self._settings.model_dump(), **changes})
        if updated.script_url:
            updated = updated.model_copy(update={"script_url": updated.script_url.strip()})
        self._settings = updated
        self._repository.save(persistence.SHEET_CONFIG, updated.to_wire())
        if not self._auto_push_enabled:
            self._debouncer.cancel()
        log_action(
            self._logger,
            "sync",
            "configure",
            self._actor_name,
            "applied",
            connected=updated.is_connected,
            auto_sync=updated.auto_sync,
            pull_lock=updated.pull_lock,
        )
        return updated

    def connect_from_launch_url(self, launch_url: str) -> SheetConfig | None:
        """Apply a share link carrying ``?script=<url>``; returns None if it has none."""
        values = parse_qs(urlparse(launch_url).query).get("script")
        if not values or not values[0].strip():
            return None
        return self.configure(script_url=values[0], is_connected=True, auto_sync=True)

    # Push

    async def push(self) -> SyncOutcome:
        self._debouncer.cancel()
        refusal = self._precheck(SyncDirection.PUSH)
        if refusal is not None:
            return self._finish(refusal)
        transport = self._current_transport()
        async with self._lock:
            rows = self._store.snapshots
            log = self._audit_entry(AuditActivity.PUSH, f"Synchronized {len(rows)} items")
            try:
                await asyncio.to_thread(transport.push, rows, log)
            except ApiError as exc:
                await self._report(transport, AuditActivity.PUSH_ERROR, f"Push failed: {exc.message}")
                return self._finish(SyncOutcome(SyncDirection.PUSH, SyncStatus.FAILED, message=_failure_message(exc)))
            self.last_synced_at = self._clock()
            return self._finish(
                SyncOutcome(
                    SyncDirection.PUSH,
                    SyncStatus.SUCCEEDED,
                    synced_at=self.last_synced_at,
                    rows=len(rows),
                )
            )

    # Pull

    async def pull(self, force: bool = False) -> SyncOutcome:
        """Fetch the remote snapshot set and apply it if policy allows.

        A forced pull ignores ``pull_lock``; every other guard still applies.
        """
        refusal = self._precheck(SyncDirection.PULL)
        if refusal is not None:
            return self._finish(refusal)
        if self._settings.pull_lock and not force:
            return self._finish(SyncOutcome(SyncDirection.PULL, SyncStatus.SKIPPED, SyncReason.PULL_LOCKED))
        if self._pulling:
            return self._finish(SyncOutcome(SyncDirection.PULL, SyncStatus.SKIPPED, SyncReason.IN_FLIGHT))

        self._pulling = True
        try:
            transport = self._current_transport()
            async with self._lock:
                return self._finish(await self._pull_locked(transport))
        finally:
            self._pulling = False

    async def _pull_locked(self, transport: SheetTransport) -> SyncOutcome:
        generation = self._generation
        try:
            rows = await asyncio.to_thread(transport.fetch_rows)
        except ApiError as exc:
            await self._report(transport, AuditActivity.PULL_ERROR, "Connection error while fetching data")
            return SyncOutcome(SyncDirection.PULL, SyncStatus.FAILED, message=_failure_message(exc))

        if rows is None:
            await self._report(transport, AuditActivity.PULL_PROTECTED, "Remote returned no row data")
            return SyncOutcome(SyncDirection.PULL, SyncStatus.REJECTED, SyncReason.NO_DATA)
        if generation != self._generation:
            await self._report(transport, AuditActivity.PULL_PROTECTED, "Local data changed during pull; result discarded")
            return SyncOutcome(SyncDirection.PULL, SyncStatus.REJECTED, SyncReason.STALE, rows=len(rows))
        if not rows and self._store.snapshots:
            await self._report(transport, AuditActivity.PULL_PROTECTED, "Empty remote data blocked by the safety lock")
            return SyncOutcome(SyncDirection.PULL, SyncStatus.REJECTED, SyncReason.EMPTY_REMOTE)

        self._store.replace_snapshots(rows, origin=ChangeOrigin.REMOTE)
        self.last_synced_at = self._clock()
        await self._report(transport, AuditActivity.PULL, f"Applied {len(rows)} items from remote")
        return SyncOutcome(SyncDirection.PULL, SyncStatus.APPLIED, synced_at=self.last_synced_at, rows=len(rows))

    # Internals

    @property
    def _auto_push_enabled(self) -> bool:
        settings = self._settings
        return bool(settings.auto_sync and settings.is_connected and settings.script_url)

    @property
    def _actor_name(self) -> str | None:
        return self._actor.name if self._actor else None

    def _precheck(self, direction: SyncDirection) -> SyncOutcome | None:
        if not self._settings.script_url:
            return SyncOutcome(direction, SyncStatus.SKIPPED, SyncReason.NOT_CONFIGURED)
        if self._actor is None:
            return SyncOutcome(direction, SyncStatus.SKIPPED, SyncReason.NO_ACTOR)
        return None

    def _on_store_change(self, notice: ChangeNotice) -> None:
        if notice.origin is ChangeOrigin.REMOTE:
            return
        self._generation += 1
        if self._running and self._auto_push_enabled and self._actor is not None:
            self._debouncer.trigger()

    async def _auto_push(self) -> None:
        if self._auto_push_enabled:
            await self.push()

    async def _periodic_pull(self) -> None:
        if self._settings.is_connected and not self._settings.pull_lock:
            await self.pull()

    def _default_transport(self, script_url: str) -> SheetTransport:
        return SheetClient(http=HttpClient(self._config), script_url=script_url)

    def _current_transport(self) -> SheetTransport:
        url = self._settings.script_url
        if self._transport is None or self._transport_url != url:
            self._transport = self._transport_factory(url)
            self._transport_url = url
        return self._transport

    def _audit_entry(self, activity: AuditActivity, details: str) -> AuditLogEntry:
        actor = self._actor
        return AuditLogEntry(
            timestamp=self._clock().isoformat(),
            user=actor.name if actor else "System",
            role=actor.role.value if actor else "",
            activity=activity.value,
            details=details,
        )

    async def _report(self, transport: SheetTransport, activity: AuditActivity, details: str) -> None:
        try:
            await asyncio.to_thread(transport.log_only, self._audit_entry(activity, details))
        except ApiError as exc:
            self._logger.warning("audit entry %s not delivered: %s", activity.value, exc)

    def _finish(self, outcome: SyncOutcome) -> SyncOutcome:
        log_action(
            self._logger,
            "sync",
            outcome.direction.value,
            self._actor_name,
            outcome.status.value.lower(),
            reason=outcome.reason.value if outcome.reason else None,
            rows=outcome.rows,
            message=outcome.message or None,
        )
        if self._on_outcome is not None:
            self._on_outcome(outcome)
        return outcome
