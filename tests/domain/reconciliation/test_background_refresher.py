from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from subsync.domain.errors import SubscriptionConflictError, VendorCallError
from subsync.domain.model import utcnow
from subsync.domain.reconciliation import (
    BackgroundRefresher,
    CommitSummary,
    ConsistencyController,
    CycleResult,
    MergeResult,
    ReconciliationEngine,
    RefreshOutcome,
)
from tests.helpers.subscriptions import (
    OTHER_OWNER,
    OWNER,
    FakeClock,
    make_record,
    make_subscription,
)
from tests.helpers.unit_of_work import failing_on_commit
from tests.helpers.vendor import FakeVendorGateway, VendorFaults

if TYPE_CHECKING:
    from collections.abc import Callable, Collection
    from uuid import UUID

    from subsync.domain.model import Snapshot, Subscription, VendorRecord
    from subsync.domain.ports import UnitOfWorkFactory


def _refresher(
    gateway: FakeVendorGateway,
    factory: UnitOfWorkFactory,
    *,
    timeout_seconds: float = 1.0,
    max_concurrency: int = 4,
) -> BackgroundRefresher:
    controller = ConsistencyController(factory, engine=ReconciliationEngine(clock=FakeClock()))
    return BackgroundRefresher(
        gateway, controller, timeout_seconds=timeout_seconds, max_concurrency=max_concurrency
    )


def _state(rows: list[Subscription]) -> list[tuple[object, ...]]:
    return [(row.public_id, row.updated_at, *row.vendor_view().values()) for row in rows]


def test_refresh_commits_vendor_fields(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    (a,) = seed(make_subscription())
    gateway = FakeVendorGateway()
    gateway.publish(OWNER, make_record(a.public_id, vendor_balance=Decimal("10")))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {a.public_id: a})

    assert asyncio.run(scenario()) is RefreshOutcome.COMMITTED
    (stored,) = load_owner(OWNER)
    assert stored.vendor_status == "ACTIVE"
    assert stored.vendor_balance == Decimal("10")
    assert gateway.calls == [(OWNER, (a.public_id,))]


def test_timed_out_refresh_leaves_store_unchanged(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
    caplog: pytest.LogCaptureFixture,
) -> None:
    rows = seed(make_subscription(), make_subscription())
    before = _state(load_owner(OWNER))
    gateway = FakeVendorGateway(faults=VendorFaults(delay_seconds=0.5))
    gateway.publish(OWNER, *(make_record(row.public_id) for row in rows))
    refresher = _refresher(gateway, unit_of_work_factory, timeout_seconds=0.05)

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {row.public_id: row for row in rows})

    with caplog.at_level(logging.WARNING):
        outcome = asyncio.run(scenario())

    assert outcome is RefreshOutcome.TIMED_OUT
    assert _state(load_owner(OWNER)) == before
    assert "refresh abandoned" in caplog.text
    assert len(gateway.calls) == 1


def test_vendor_error_is_contained(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    (row,) = seed(make_subscription())
    before = _state(load_owner(OWNER))
    gateway = FakeVendorGateway(faults=VendorFaults(error=VendorCallError(500, "boom")))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {row.public_id: row})

    assert asyncio.run(scenario()) is RefreshOutcome.VENDOR_FAILED
    assert _state(load_owner(OWNER)) == before


def test_unexpected_gateway_error_is_contained(unit_of_work_factory: UnitOfWorkFactory) -> None:
    gateway = FakeVendorGateway(faults=VendorFaults(error=KeyError("surprise")))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {})

    assert asyncio.run(scenario()) is RefreshOutcome.FAILED


def test_commit_failure_is_contained_and_rolled_back(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    rows = seed(make_subscription(), make_subscription())
    before = _state(load_owner(OWNER))
    gateway = FakeVendorGateway()
    gateway.publish(OWNER, *(make_record(row.public_id) for row in rows))
    refresher = _refresher(gateway, failing_on_commit(unit_of_work_factory))

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {row.public_id: row for row in rows})

    assert asyncio.run(scenario()) is RefreshOutcome.FAILED
    assert _state(load_owner(OWNER)) == before


def test_conflict_is_reported_as_outcome() -> None:
    @dataclass
    class ConflictingController:
        def merge_and_commit(self, owner_id: str, *_: object, **__: object) -> None:
            raise SubscriptionConflictError(owner_id)

    refresher = BackgroundRefresher(
        FakeVendorGateway(),
        ConflictingController(),  # type: ignore[arg-type]
        timeout_seconds=1.0,
    )

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {})

    assert asyncio.run(scenario()) is RefreshOutcome.CONFLICT


def test_unknown_and_duplicate_ids_from_vendor_are_dropped(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    (row,) = seed(make_subscription())
    gateway = FakeVendorGateway(
        faults=VendorFaults(
            duplicate_ids=(row.public_id,),
            extra_records=(make_record(uuid4()),),
        )
    )
    gateway.publish(OWNER, make_record(row.public_id, vendor_status="ACTIVE"))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {row.public_id: row})

    assert asyncio.run(scenario()) is RefreshOutcome.COMMITTED
    (stored,) = load_owner(OWNER)
    assert stored.vendor_status == "ACTIVE"


def test_nothing_to_do_when_vendor_knows_no_local_ids(
    unit_of_work_factory: UnitOfWorkFactory,
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    gateway = FakeVendorGateway(faults=VendorFaults(extra_records=(make_record(uuid4()),)))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> RefreshOutcome:
        return await refresher.schedule(OWNER, {})

    assert asyncio.run(scenario()) is RefreshOutcome.NOTHING_TO_DO
    assert load_owner(OWNER) == []


def test_refreshes_for_one_owner_are_coalesced(unit_of_work_factory: UnitOfWorkFactory) -> None:
    gateway = FakeVendorGateway(faults=VendorFaults(delay_seconds=0.05))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> None:
        first = refresher.schedule(OWNER, {})
        second = refresher.schedule(OWNER, {})
        assert first is second
        assert refresher.in_flight(OWNER)
        await first
        assert not refresher.in_flight(OWNER)
        third = refresher.schedule(OWNER, {})
        assert third is not first
        await third

    asyncio.run(scenario())
    assert len(gateway.calls) == 2


def test_concurrent_cycles_are_bounded(unit_of_work_factory: UnitOfWorkFactory) -> None:
    @dataclass
    class TrackingGateway:
        active: int = 0
        peak: int = 0

        async def fetch(self, owner_id: str, public_ids: Collection[UUID]) -> list[VendorRecord]:
            self.active += 1
            self.peak = max(self.peak, self.active)
            await asyncio.sleep(0.02)
            self.active -= 1
            return []

    gateway = TrackingGateway()
    controller = ConsistencyController(unit_of_work_factory)
    refresher = BackgroundRefresher(gateway, controller, timeout_seconds=1.0, max_concurrency=2)

    async def scenario() -> list[RefreshOutcome]:
        tasks = [refresher.schedule(f"owner-{index}", {}) for index in range(5)]
        return list(await asyncio.gather(*tasks))

    outcomes = asyncio.run(scenario())

    assert outcomes == [RefreshOutcome.NOTHING_TO_DO] * 5
    assert gateway.peak == 2


def test_schedule_copies_the_snapshot(unit_of_work_factory: UnitOfWorkFactory) -> None:
    gateway = FakeVendorGateway()
    refresher = _refresher(gateway, unit_of_work_factory)
    row = make_subscription(id=1)
    snapshot: Snapshot = {row.public_id: row}

    async def scenario() -> None:
        task = refresher.schedule(OWNER, snapshot)
        snapshot.clear()
        await task

    asyncio.run(scenario())
    assert gateway.calls == [(OWNER, (row.public_id,))]


def test_drain_waits_for_all_owners(unit_of_work_factory: UnitOfWorkFactory) -> None:
    gateway = FakeVendorGateway(faults=VendorFaults(delay_seconds=0.01))
    refresher = _refresher(gateway, unit_of_work_factory)

    async def scenario() -> None:
        refresher.schedule(OWNER, {})
        refresher.schedule(OTHER_OWNER, {})
        await refresher.drain()
        assert not refresher.in_flight(OWNER)
        assert not refresher.in_flight(OTHER_OWNER)

    asyncio.run(scenario())
    assert {owner for owner, _ in gateway.calls} == {OWNER, OTHER_OWNER}


def test_aclose_cancels_in_flight_cycles(unit_of_work_factory: UnitOfWorkFactory) -> None:
    gateway = FakeVendorGateway(faults=VendorFaults(delay_seconds=5))
    refresher = _refresher(gateway, unit_of_work_factory, timeout_seconds=10)

    async def scenario() -> asyncio.Task[RefreshOutcome]:
        task = refresher.schedule(OWNER, {})
        await asyncio.sleep(0)
        await refresher.aclose()
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()
    assert not refresher.in_flight(OWNER)


def test_aclose_waits_for_a_commit_already_running() -> None:
    started = threading.Event()
    finished = threading.Event()

    @dataclass
    class SlowController:
        def merge_and_commit(self, *_: object, **__: object) -> CycleResult:
            started.set()
            time.sleep(0.1)
            finished.set()
            return CycleResult(merge=MergeResult(merged_at=utcnow()), summary=CommitSummary())

    refresher = BackgroundRefresher(
        FakeVendorGateway(),
        SlowController(),  # type: ignore[arg-type]
        timeout_seconds=1.0,
    )

    async def scenario() -> tuple[asyncio.Task[RefreshOutcome], bool]:
        task = refresher.schedule(OWNER, {})
        while not started.is_set():
            await asyncio.sleep(0.005)
        await refresher.aclose()
        return task, finished.is_set()

    task, committed_before_close = asyncio.run(scenario())
    assert committed_before_close
    assert task.cancelled()


@pytest.mark.parametrize(
    ("timeout_seconds", "max_concurrency"),
    [(0, 1), (1.0, 0)],
)
def test_refresher_rejects_invalid_bounds(
    unit_of_work_factory: UnitOfWorkFactory, timeout_seconds: float, max_concurrency: int
) -> None:
    with pytest.raises(ValueError, match="must be positive"):
        _refresher(
            FakeVendorGateway(),
            unit_of_work_factory,
            timeout_seconds=timeout_seconds,
            max_concurrency=max_concurrency,
        )
