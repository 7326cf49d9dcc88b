"""Commit merge results atomically, under a configurable isolation mode.

``SERIALIZABLE`` reads the rows a cycle depends on and writes the merged
partition inside one serializable transaction. ``BEST_EFFORT`` reads in a short
transaction of its own and writes in a second one; the public id uniqueness
constraint is then the only guard against a concurrent cycle.

Either way a cycle's writes become visible all at once or not at all.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from subsync.domain.errors import SubscriptionConflictError
from subsync.domain.model import snapshot_of
from subsync.domain.ports import ConcurrentWriteError, IsolationLevel

from .contracts import CommitSummary, CycleResult, IsolationMode, MergeResult, SyncMode
from .engine import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from subsync.domain.model import Snapshot, VendorRecord
    from subsync.domain.ports import SubscriptionUnitOfWork, UnitOfWorkFactory

log = getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class ConsistencyController:
    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        engine: ReconciliationEngine | None = None,
        isolation: IsolationMode = IsolationMode.SERIALIZABLE,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._unit_of_work_factory = unit_of_work_factory
        self.engine = engine or ReconciliationEngine()
        self.isolation = isolation
        self.batch_size = batch_size

    def read_snapshot(self, owner_id: str) -> Snapshot:
        with self._open(IsolationLevel.DEFAULT) as uow:
            return snapshot_of(uow.repositories.subscriptions.find_by_owner(owner_id))

    def commit(self, owner_id: str, result: MergeResult) -> CommitSummary:
        """Write ``result`` for ``owner_id`` in a single transaction."""

        if result.is_empty:
            return CommitSummary()
        with self._open(self._write_level) as uow:
            summary = self._write(uow, owner_id, result)
            self._finish(uow, owner_id, result)
        log.info(
            "Committed %d updates and %d creates for owner %s (%d skipped)",
            summary.updated,
            summary.created,
            owner_id,
            len(summary.skipped),
        )
        return summary

    def merge_and_commit(
        self,
        owner_id: str,
        snapshot: Snapshot,
        records: Iterable[VendorRecord],
        *,
        mode: SyncMode = SyncMode.MERGE_ONLY,
    ) -> CycleResult:
        """Merge ``records`` against an already-read ``snapshot`` and commit."""

        result = self.engine.merge(owner_id, snapshot, records, mode=mode)
        return CycleResult(merge=result, summary=self.commit(owner_id, result))

    def full_sync(self, owner_id: str, records: Iterable[VendorRecord]) -> CycleResult:
        """Merge ``records`` creating missing rows, then return the owner's rows."""

        batch = list(records)
        public_ids = {record.public_id for record in batch}
        if self.isolation is IsolationMode.SERIALIZABLE:
            return self._full_sync_serializable(owner_id, batch, public_ids)
        return self._full_sync_best_effort(owner_id, batch, public_ids)

    # --- Helpers ------------------------------------------------------------

    @property
    def _write_level(self) -> IsolationLevel:
        if self.isolation is IsolationMode.SERIALIZABLE:
            return IsolationLevel.SERIALIZABLE
        return IsolationLevel.DEFAULT

    def _open(self, level: IsolationLevel) -> SubscriptionUnitOfWork:
        return self._unit_of_work_factory(level)

    def _full_sync_serializable(
        self, owner_id: str, batch: list[VendorRecord], public_ids: set[UUID]
    ) -> CycleResult:
        with self._open(IsolationLevel.SERIALIZABLE) as uow:
            repository = uow.repositories.subscriptions
            snapshot = snapshot_of(repository.find_by_owner_and_ids(owner_id, public_ids))
            result = self.engine.merge(owner_id, snapshot, batch, mode=SyncMode.FULL_SYNC)
            summary = self._write(uow, owner_id, result)
            subscriptions = tuple(repository.find_by_owner(owner_id))
            self._finish(uow, owner_id, result)
        log.info(
            "Full sync for owner %s: %d updated, %d created, %d rows",
            owner_id,
            summary.updated,
            summary.created,
            len(subscriptions),
        )
        return CycleResult(merge=result, summary=summary, subscriptions=subscriptions)

    def _full_sync_best_effort(
        self, owner_id: str, batch: list[VendorRecord], public_ids: set[UUID]
    ) -> CycleResult:
        with self._open(IsolationLevel.DEFAULT) as uow:
            snapshot = snapshot_of(
                uow.repositories.subscriptions.find_by_owner_and_ids(owner_id, public_ids)
            )
        result = self.engine.merge(owner_id, snapshot, batch, mode=SyncMode.FULL_SYNC)
        summary = self.commit(owner_id, result)
        with self._open(IsolationLevel.DEFAULT) as uow:
            subscriptions = tuple(uow.repositories.subscriptions.find_by_owner(owner_id))
        return CycleResult(merge=result, summary=summary, subscriptions=subscriptions)

    def _write(
        self, uow: SubscriptionUnitOfWork, owner_id: str, result: MergeResult
    ) -> CommitSummary:
        repository = uow.repositories.subscriptions
        skipped: list[UUID] = []
        updated = created = pending = 0

        for merged in result.updates:
            stored = repository.get(merged.id) if merged.id is not None else None
            if (
                stored is None
                or stored.owner_id != owner_id
                or stored.public_id != merged.public_id
            ):
                log.warning(
                    "Subscription %s changed under owner %s since the snapshot, skipping",
                    merged.public_id,
                    owner_id,
                )
                skipped.append(merged.public_id)
                continue
            stored.copy_vendor_fields_from(merged)
            updated += 1
            pending = self._flush_if_full(uow, owner_id, result, pending + 1)

        for subscription in result.creates:
            repository.add(subscription)
            created += 1
            pending = self._flush_if_full(uow, owner_id, result, pending + 1)

        if pending:
            self._flush(uow, owner_id, result)
        return CommitSummary(updated=updated, created=created, skipped=tuple(skipped))

    def _flush_if_full(
        self, uow: SubscriptionUnitOfWork, owner_id: str, result: MergeResult, pending: int
    ) -> int:
        if pending < self.batch_size:
            return pending
        self._flush(uow, owner_id, result)
        return 0

    def _flush(self, uow: SubscriptionUnitOfWork, owner_id: str, result: MergeResult) -> None:
        try:
            uow.flush()
        except ConcurrentWriteError as exc:
            raise _conflict(owner_id, result) from exc

    def _finish(self, uow: SubscriptionUnitOfWork, owner_id: str, result: MergeResult) -> None:
        try:
            uow.commit()
        except ConcurrentWriteError as exc:
            raise _conflict(owner_id, result) from exc

def _conflict(owner_id: str, result: MergeResult) -> SubscriptionConflictError:
    public_ids = tuple(subscription.public_id for subscription in result.partition)
    log.warning(
        "Concurrent write rejected for owner %s, rolled back %d rows",
        owner_id,
        len(public_ids),
    )
    return SubscriptionConflictError(owner_id, public_ids=public_ids)
