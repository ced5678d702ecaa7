from __future__ import annotations

import asyncio
import threading

import pytest

from conftest import make_event, make_item
from stockmaster_sdk import persistence
from stockmaster_sdk.config import ClientConfig
from stockmaster_sdk.exceptions import ForbiddenError, NotFoundError, RateLimitError, ServerError, TransportError
from stockmaster_sdk.inventory_store import InventoryStore
from stockmaster_sdk.models import MovementType
from stockmaster_sdk.sync_coordinator import SyncCoordinator, SyncDirection, SyncReason, SyncStatus

SCRIPT_URL = "https://script.example.com/macros/s/abc/exec"


class _SheetTransportStub:
    def __init__(self, rows=None) -> None:
        self.rows = rows
        self.error: Exception | None = None
        self.pushed: list = []
        self.logs: list = []
        self.fetches = 0
        self.gate: threading.Event | None = None
        self.started = threading.Event()
        self.push_gate: threading.Event | None = None
        self.push_started = threading.Event()

    def fetch_rows(self):
        self.fetches += 1
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return None if self.rows is None else list(self.rows)

    def push(self, rows, log) -> None:
        self.push_started.set()
        if self.push_gate is not None:
            self.push_gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        self.pushed.append((tuple(rows), log))

    def log_only(self, log) -> None:
        self.logs.append(log)

    @property
    def activities(self) -> list[str]:
        return [log.activity for log in self.logs]


def _remote_rows() -> list:
    return [
        make_item("towel-main", "Towel", "Gudang Utama", 70),
        make_item("sheet-main", "Sheet", "Gudang Utama", 12),
    ]


def _coordinator(
    store: InventoryStore,
    repository,
    transport: _SheetTransportStub,
    clock,
    leader,
    *,
    delay: float = 0.05,
    interval: float = 60,
    outcomes: list | None = None,
) -> SyncCoordinator:
    coordinator = SyncCoordinator(
        store,
        repository,
        config=ClientConfig(env_name="test", auto_push_delay_seconds=delay, pull_interval_seconds=interval),
        transport_factory=lambda url: transport,
        clock=clock,
        actor=leader,
        on_outcome=outcomes.append if outcomes is not None else None,
    )
    coordinator.configure(script_url=SCRIPT_URL, is_connected=True, auto_sync=True)
    return coordinator


@pytest.mark.asyncio
async def test_push_sends_full_snapshot_set(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub()
    outcomes: list = []
    coordinator = _coordinator(towel_store, repository, transport, clock, leader, outcomes=outcomes)

    outcome = await coordinator.push()

    assert outcome.status is SyncStatus.SUCCEEDED
    assert outcome.rows == 1
    assert coordinator.last_synced_at == clock.now
    rows, log = transport.pushed[0]
    assert rows == towel_store.snapshots
    assert (log.user, log.role, log.activity) == ("Default Leader", "LEADER", "PUSH")
    assert outcomes == [outcome]


@pytest.mark.asyncio
async def test_push_without_url_or_actor_is_skipped(towel_store, repository, clock, leader) -> None:
    built: list = []
    coordinator = SyncCoordinator(
        towel_store,
        repository,
        transport_factory=lambda url: built.append(url),
        clock=clock,
    )
    outcome = await coordinator.push()
    assert (outcome.status, outcome.reason) == (SyncStatus.SKIPPED, SyncReason.NOT_CONFIGURED)

    coordinator.configure(script_url=SCRIPT_URL)
    outcome = await coordinator.pull(force=True)
    assert (outcome.status, outcome.reason) == (SyncStatus.SKIPPED, SyncReason.NO_ACTOR)
    assert built == []


@pytest.mark.asyncio
async def test_push_transport_failure_is_reported(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub()
    transport.error = TransportError(code="TRANSPORT_ERROR", message="offline", details=None, status_code=0)
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)

    outcome = await coordinator.push()

    assert outcome.status is SyncStatus.FAILED
    assert "offline" in outcome.message
    assert coordinator.last_synced_at is None
    assert transport.activities == ["PUSH_ERROR"]


@pytest.mark.asyncio
async def test_burst_of_local_changes_pushes_once(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub()
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    coordinator.start()
    try:
        for index in range(3):
            towel_store.append(make_event(f"tr-{index}", MovementType.IN, 1, item_id="towel-main"))
        assert coordinator.push_pending is True
        await asyncio.sleep(0.3)
    finally:
        await coordinator.close()

    assert len(transport.pushed) == 1
    rows, _ = transport.pushed[0]
    assert rows[0].expected_qty == 53


@pytest.mark.asyncio
async def test_close_waits_for_auto_push_in_flight(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub()
    transport.push_gate = threading.Event()
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    coordinator.start()
    towel_store.append(make_event("tr-1", MovementType.IN, 1, item_id="towel-main"))
    assert await asyncio.to_thread(transport.push_started.wait, 5) is True
    assert coordinator.push_pending is False

    closing = asyncio.create_task(coordinator.close())
    await asyncio.sleep(0.05)
    assert closing.done() is False

    transport.push_gate.set()
    await asyncio.wait_for(closing, timeout=5)
    assert len(transport.pushed) == 1
    assert coordinator.last_synced_at is not None


@pytest.mark.asyncio
async def test_no_auto_push_when_auto_sync_is_off(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub()
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    coordinator.configure(auto_sync=False)
    coordinator.start()
    try:
        towel_store.append(make_event("tr-1", MovementType.IN, 1, item_id="towel-main"))
        await asyncio.sleep(0.15)
    finally:
        await coordinator.close()
    assert transport.pushed == []


@pytest.mark.asyncio
async def test_pull_replaces_snapshots_without_echo_push(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    coordinator.start()
    try:
        outcome = await coordinator.pull(force=True)
        await asyncio.sleep(0.15)
    finally:
        await coordinator.close()

    assert outcome.status is SyncStatus.APPLIED
    assert outcome.direction is SyncDirection.PULL
    assert outcome.rows == 2
    assert [row.id for row in towel_store.snapshots] == ["towel-main", "sheet-main"]
    assert coordinator.last_synced_at == clock.now
    assert transport.activities == ["PULL"]
    assert transport.pushed == []


@pytest.mark.asyncio
async def test_pull_is_idempotent(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)

    await coordinator.pull()
    first = towel_store.snapshots
    await coordinator.pull()

    assert towel_store.snapshots == first
    assert towel_store.reconcile().clean is True


@pytest.mark.asyncio
async def test_empty_remote_never_wipes_local_rows(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=[])
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    before = towel_store.snapshots

    outcome = await coordinator.pull(force=True)

    assert (outcome.status, outcome.reason) == (SyncStatus.REJECTED, SyncReason.EMPTY_REMOTE)
    assert towel_store.snapshots == before
    assert coordinator.last_synced_at is None
    assert transport.activities == ["PULL_PROTECTED"]


@pytest.mark.asyncio
async def test_empty_remote_with_empty_local_is_applied(repository, clock, leader) -> None:
    store = InventoryStore(repository, clock=clock)
    transport = _SheetTransportStub(rows=[])
    coordinator = _coordinator(store, repository, transport, clock, leader)

    outcome = await coordinator.pull()

    assert outcome.status is SyncStatus.APPLIED
    assert store.snapshots == ()


@pytest.mark.asyncio
async def test_non_array_body_is_rejected_as_no_data(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=None)
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)

    outcome = await coordinator.pull()

    assert (outcome.status, outcome.reason) == (SyncStatus.REJECTED, SyncReason.NO_DATA)


@pytest.mark.asyncio
async def test_pull_lock_blocks_unforced_pulls_only(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    coordinator.configure(pull_lock=True)

    locked = await coordinator.pull()
    assert (locked.status, locked.reason) == (SyncStatus.SKIPPED, SyncReason.PULL_LOCKED)
    assert transport.fetches == 0

    forced = await coordinator.pull(force=True)
    assert forced.status is SyncStatus.APPLIED


@pytest.mark.asyncio
async def test_forced_pull_still_honours_empty_guard(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=[])
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    coordinator.configure(pull_lock=True)

    outcome = await coordinator.pull(force=True)

    assert outcome.reason is SyncReason.EMPTY_REMOTE
    assert len(towel_store.snapshots) == 1


@pytest.mark.asyncio
async def test_reentrant_pull_is_dropped(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    transport.gate = threading.Event()
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)

    first = asyncio.create_task(coordinator.pull())
    await asyncio.to_thread(transport.started.wait, 5)
    assert coordinator.pulling is True

    second = await coordinator.pull(force=True)
    transport.gate.set()
    first_outcome = await first

    assert (second.status, second.reason) == (SyncStatus.SKIPPED, SyncReason.IN_FLIGHT)
    assert first_outcome.status is SyncStatus.APPLIED
    assert transport.fetches == 1
    assert coordinator.pulling is False


@pytest.mark.asyncio
async def test_local_change_during_pull_discards_result(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    transport.gate = threading.Event()
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)

    pending = asyncio.create_task(coordinator.pull())
    await asyncio.to_thread(transport.started.wait, 5)
    towel_store.append(make_event("tr-1", MovementType.OUT, 5, item_id="towel-main"))
    transport.gate.set()
    outcome = await pending

    assert (outcome.status, outcome.reason) == (SyncStatus.REJECTED, SyncReason.STALE)
    assert [row.expected_qty for row in towel_store.snapshots] == [45]


@pytest.mark.asyncio
async def test_pull_failure_leaves_state_and_reports_error(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    transport.error = ServerError(code="HTTP_ERROR", message="boom", details=None, status_code=500)
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)
    before = towel_store.snapshots

    outcome = await coordinator.pull(force=True)

    assert outcome.status is SyncStatus.FAILED
    assert towel_store.snapshots == before
    assert outcome.message == "[500] HTTP_ERROR: boom (the script failed; see its execution log)"
    assert transport.activities == ["PULL_ERROR"]
    assert coordinator.pulling is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "hint"),
    [
        (ForbiddenError(code="HTTP_ERROR", message="denied", details=None, status_code=403), "not shared"),
        (NotFoundError(code="HTTP_ERROR", message="missing", details=None, status_code=404), "script URL"),
        (RateLimitError(code="HTTP_ERROR", message="slow down", details=None, status_code=429), "quota"),
    ],
)
async def test_failed_outcome_explains_mapped_errors(towel_store, repository, clock, leader, error, hint) -> None:
    transport = _SheetTransportStub()
    transport.error = error
    coordinator = _coordinator(towel_store, repository, transport, clock, leader)

    outcome = await coordinator.push()

    assert outcome.status is SyncStatus.FAILED
    assert outcome.message.startswith(str(error))
    assert hint in outcome.message


@pytest.mark.asyncio
async def test_periodic_pull_respects_lock(towel_store, repository, clock, leader) -> None:
    transport = _SheetTransportStub(rows=_remote_rows())
    coordinator = _coordinator(towel_store, repository, transport, clock, leader, interval=0.02)
    coordinator.configure(pull_lock=True)
    coordinator.start()
    try:
        await asyncio.sleep(0.1)
        assert transport.fetches == 0

        coordinator.configure(pull_lock=False)
        await asyncio.sleep(0.1)
    finally:
        await coordinator.close()
    assert transport.fetches >= 1


def test_launch_url_connects_and_persists(towel_store, repository, clock, leader) -> None:
    coordinator = SyncCoordinator(towel_store, repository, transport_factory=lambda url: _SheetTransportStub(), clock=clock)

    assert coordinator.connect_from_launch_url("https://app.example.com/") is None
    settings = coordinator.connect_from_launch_url(
        "https://app.example.com/?script=https%3A%2F%2Fscript.example.com%2Fmacros%2Fs%2Fabc%2Fexec"
    )

    assert settings is not None
    assert (settings.script_url, settings.is_connected, settings.auto_sync) == (SCRIPT_URL, True, True)
    assert repository.load(persistence.SHEET_CONFIG) == {
        "scriptUrl": SCRIPT_URL,
        "isConnected": True,
        "autoSync": True,
        "pullLock": False,
    }
    reloaded = SyncCoordinator(towel_store, repository, clock=clock)
    assert reloaded.settings == settings


def test_initial_settings_come_from_config(towel_store, repository) -> None:
    coordinator = SyncCoordinator(towel_store, repository, config=ClientConfig(env_name="test", script_url=SCRIPT_URL))
    assert coordinator.settings.script_url == SCRIPT_URL
    assert coordinator.settings.is_connected is True
    assert coordinator.settings.auto_sync is False
