from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from subsync.adapters.sqlalchemy.unit_of_work import SqlAlchemySubscriptionUnitOfWork
from subsync.domain.errors import SubscriptionConflictError
from subsync.domain.model import snapshot_of, utcnow
from subsync.domain.reconciliation import (
    ConsistencyController,
    IsolationMode,
    ReconciliationEngine,
    SyncMode,
)
from tests.helpers.subscriptions import (
    OTHER_OWNER,
    OWNER,
    FakeClock,
    make_record,
    make_subscription,
)
from tests.helpers.unit_of_work import CommitFailure, failing_on_commit

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from subsync.domain.model import Subscription, VendorRecord
    from subsync.domain.ports import UnitOfWorkFactory
    from subsync.domain.reconciliation import CycleResult


def _controller(
    factory: UnitOfWorkFactory,
    *,
    isolation: IsolationMode = IsolationMode.SERIALIZABLE,
    batch_size: int = 100,
) -> ConsistencyController:
    return ConsistencyController(
        factory,
        engine=ReconciliationEngine(clock=FakeClock()),
        isolation=isolation,
        batch_size=batch_size,
    )


def test_read_snapshot_is_scoped_to_owner(
    unit_of_work_factory: UnitOfWorkFactory, seed: Callable[..., list[Subscription]]
) -> None:
    mine, theirs = seed(make_subscription(), make_subscription(owner_id=OTHER_OWNER))

    snapshot = _controller(unit_of_work_factory).read_snapshot(OWNER)

    assert set(snapshot) == {mine.public_id}
    assert theirs.public_id not in snapshot


@pytest.mark.parametrize("isolation", list(IsolationMode))
def test_merge_and_commit_persists_vendor_fields_for_u1(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
    isolation: IsolationMode,
) -> None:
    (a,) = seed(make_subscription())
    controller = _controller(unit_of_work_factory, isolation=isolation)
    snapshot = controller.read_snapshot(OWNER)

    cycle = controller.merge_and_commit(
        OWNER,
        snapshot,
        [make_record(a.public_id, vendor_status="ACTIVE", vendor_balance=Decimal("10"))],
    )

    assert cycle.summary.updated == 1
    assert cycle.summary.created == 0
    (stored,) = load_owner(OWNER)
    assert stored.vendor_status == "ACTIVE"
    assert stored.vendor_balance == Decimal("10")
    assert stored.updated_at > a.updated_at


def test_merge_only_never_creates_rows(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    seed(make_subscription())
    controller = _controller(unit_of_work_factory)

    cycle = controller.merge_and_commit(
        OWNER, controller.read_snapshot(OWNER), [make_record(uuid4())], mode=SyncMode.MERGE_ONLY
    )

    assert cycle.merge.is_empty
    assert len(cycle.merge.unknown) == 1
    assert len(load_owner(OWNER)) == 1


def test_commit_failure_rolls_back_whole_cycle(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    first, second = seed(make_subscription(), make_subscription())
    controller = _controller(failing_on_commit(unit_of_work_factory))
    snapshot = snapshot_of([first, second])

    with pytest.raises(CommitFailure):
        controller.merge_and_commit(
            OWNER, snapshot, [make_record(first.public_id), make_record(second.public_id)]
        )

    assert all(row.vendor_status is None for row in load_owner(OWNER))


def test_rows_that_moved_owner_are_skipped(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    (mine,) = seed(make_subscription())
    (theirs,) = seed(make_subscription(owner_id=OTHER_OWNER))
    controller = _controller(unit_of_work_factory)
    # stale snapshot entry pointing at a row that now belongs to someone else
    stale = replace(mine, id=theirs.id, public_id=theirs.public_id, owner_id=OWNER)

    summary = controller.merge_and_commit(
        OWNER,
        snapshot_of([mine, stale]),
        [make_record(mine.public_id), make_record(theirs.public_id)],
    ).summary

    assert summary.updated == 1
    assert summary.skipped == (theirs.public_id,)
    (untouched,) = load_owner(OTHER_OWNER)
    assert untouched.vendor_status is None


def test_writes_are_flushed_in_batches_and_committed_once(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    rows = seed(*(make_subscription() for _ in range(5)))
    flushes: list[int] = []
    commits: list[int] = []
    original_flush = SqlAlchemySubscriptionUnitOfWork.flush
    original_commit = SqlAlchemySubscriptionUnitOfWork.commit

    def counting_flush(self: SqlAlchemySubscriptionUnitOfWork) -> None:
        flushes.append(1)
        original_flush(self)

    def counting_commit(self: SqlAlchemySubscriptionUnitOfWork) -> None:
        commits.append(1)
        original_commit(self)

    monkeypatch.setattr(SqlAlchemySubscriptionUnitOfWork, "flush", counting_flush)
    monkeypatch.setattr(SqlAlchemySubscriptionUnitOfWork, "commit", counting_commit)
    controller = _controller(unit_of_work_factory, batch_size=2)

    cycle = controller.merge_and_commit(
        OWNER, snapshot_of(rows), [make_record(row.public_id) for row in rows]
    )

    assert cycle.summary.updated == 5
    assert len(flushes) == 3
    assert len(commits) == 1
    assert all(row.vendor_status == "ACTIVE" for row in load_owner(OWNER))


@pytest.mark.parametrize("isolation", list(IsolationMode))
def test_full_sync_updates_creates_and_returns_owner_rows(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    isolation: IsolationMode,
) -> None:
    known, untouched = seed(make_subscription(), make_subscription())
    seed(make_subscription(owner_id=OTHER_OWNER))
    new_id = uuid4()
    controller = _controller(unit_of_work_factory, isolation=isolation)

    cycle = controller.full_sync(
        OWNER,
        [
            make_record(known.public_id, vendor_status="EXPIRED"),
            make_record(new_id, vendor_status="ACTIVE", offer_id="OFFER-PRO"),
        ],
    )

    assert cycle.summary.updated == 1
    assert cycle.summary.created == 1
    by_id = {row.public_id: row for row in cycle.subscriptions}
    assert set(by_id) == {known.public_id, untouched.public_id, new_id}
    assert by_id[known.public_id].vendor_status == "EXPIRED"
    assert by_id[new_id].offer_id == "OFFER-PRO"
    assert by_id[new_id].id is not None
    assert by_id[untouched.public_id].vendor_status is None


def test_two_cycles_creating_same_public_id_yield_one_conflict(
    unit_of_work_factory: UnitOfWorkFactory,
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    controller = _controller(unit_of_work_factory)
    new_id = uuid4()
    batch = [make_record(new_id)]
    # both cycles computed from the same (empty) view of the store
    first = controller.engine.merge(OWNER, {}, batch, mode=SyncMode.FULL_SYNC)
    second = controller.engine.merge(OWNER, {}, batch, mode=SyncMode.FULL_SYNC)

    assert controller.commit(OWNER, first).created == 1
    with pytest.raises(SubscriptionConflictError) as excinfo:
        controller.commit(OWNER, second)

    assert excinfo.value.public_ids == (new_id,)
    assert [row.public_id for row in load_owner(OWNER)] == [new_id]


def test_full_sync_conflicts_on_public_id_owned_by_someone_else(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    (theirs,) = seed(make_subscription(owner_id=OTHER_OWNER))
    controller = _controller(unit_of_work_factory)

    with pytest.raises(SubscriptionConflictError):
        controller.full_sync(OWNER, [make_record(theirs.public_id)])

    assert load_owner(OWNER) == []
    (still_theirs,) = load_owner(OTHER_OWNER)
    assert still_theirs.vendor_status is None


class _LockstepClock:
    """Hold every merge until both cycles have read their snapshot."""

    def __init__(self) -> None:
        self._barrier = threading.Barrier(2, timeout=5)

    def __call__(self) -> datetime:
        self._barrier.wait()
        return utcnow()


def _full_sync_side_by_side(
    factory: UnitOfWorkFactory, batches: list[list[VendorRecord]]
) -> tuple[list[CycleResult], list[SubscriptionConflictError]]:
    controller = ConsistencyController(factory, engine=ReconciliationEngine(clock=_LockstepClock()))

    def attempt(batch: list[VendorRecord]) -> CycleResult | SubscriptionConflictError:
        try:
            return controller.full_sync(OWNER, batch)
        except SubscriptionConflictError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(batches)) as pool:
        outcomes = list(pool.map(attempt, batches))
    conflicts = [item for item in outcomes if isinstance(item, SubscriptionConflictError)]
    committed = [item for item in outcomes if not isinstance(item, SubscriptionConflictError)]
    return committed, conflicts


def test_overlapping_full_syncs_creating_same_id_yield_one_conflict(
    unit_of_work_factory: UnitOfWorkFactory,
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    new_id = uuid4()

    committed, conflicts = _full_sync_side_by_side(
        unit_of_work_factory, [[make_record(new_id)], [make_record(new_id)]]
    )

    assert len(committed) == 1
    assert len(conflicts) == 1
    assert [row.public_id for row in load_owner(OWNER)] == [new_id]


def test_overlapping_full_syncs_updating_same_row_yield_one_conflict(
    unit_of_work_factory: UnitOfWorkFactory,
    seed: Callable[..., list[Subscription]],
    load_owner: Callable[[str], list[Subscription]],
) -> None:
    (row,) = seed(make_subscription())

    committed, conflicts = _full_sync_side_by_side(
        unit_of_work_factory,
        [
            [make_record(row.public_id, vendor_status="EXPIRED")],
            [make_record(row.public_id, vendor_status="SUSPENDED")],
        ],
    )

    assert len(conflicts) == 1
    assert conflicts[0].public_ids == (row.public_id,)
    (winner,) = committed
    (stored,) = load_owner(OWNER)
    assert stored.vendor_status == winner.subscriptions[0].vendor_status


def test_empty_result_does_not_open_a_transaction() -> None:
    def exploding_factory(_level: object) -> None:
        raise AssertionError("no unit of work expected")

    controller = ConsistencyController(exploding_factory)  # type: ignore[arg-type]
    result = controller.engine.merge(OWNER, {}, [])

    assert controller.commit(OWNER, result).updated == 0


def test_batch_size_must_be_positive(unit_of_work_factory: UnitOfWorkFactory) -> None:
    with pytest.raises(ValueError, match="batch_size"):
        ConsistencyController(unit_of_work_factory, batch_size=0)
