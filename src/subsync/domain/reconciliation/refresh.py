"""Background refresh of an owner's subscriptions after a read."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from subsync.domain.errors import SubscriptionConflictError, VendorCallError

from .contracts import SyncMode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from subsync.domain.model import Snapshot, VendorRecord
    from subsync.domain.ports import VendorGateway

    from .contracts import CycleResult
    from .controller import ConsistencyController

log = getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


class RefreshOutcome(StrEnum):
    COMMITTED = "committed"
    NOTHING_TO_DO = "nothing-to-do"
    TIMED_OUT = "timed-out"
    VENDOR_FAILED = "vendor-failed"
    CONFLICT = "conflict"
    FAILED = "failed"


class BackgroundRefresher:
    """Run one bounded, fire-and-forget reconciliation cycle per owner.

    A cycle makes exactly one vendor call under ``timeout_seconds``. When the
    call succeeds in time the batch is merged (merge-only) and committed in a
    worker thread; any failure abandons the cycle and leaves the store as it
    was. Failures are logged and reported through the task's
    :class:`RefreshOutcome`, never raised.

    Scheduling a refresh for an owner whose cycle is still in flight returns
    the in-flight task instead of starting a second one. At most
    ``max_concurrency`` cycles run at a time across all owners.
    """

    def __init__(
        self,
        gateway: VendorGateway,
        controller: ConsistencyController,
        *,
        timeout_seconds: float,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self._gateway = gateway
        self._controller = controller
        self.timeout_seconds = timeout_seconds
        self._slots = asyncio.Semaphore(max_concurrency)
        self._tasks: dict[str, asyncio.Task[RefreshOutcome]] = {}
        self._commits: set[asyncio.Future[CycleResult]] = set()

    def schedule(self, owner_id: str, snapshot: Snapshot) -> asyncio.Task[RefreshOutcome]:
        """Start a refresh for ``owner_id`` unless one is already running.

        Must be called from a running event loop. The caller is not expected
        to await the returned task.
        """

        running = self._tasks.get(owner_id)
        if running is not None and not running.done():
            log.debug("Refresh for owner %s already in flight, coalescing", owner_id)
            return running

        task = asyncio.create_task(
            self._run(owner_id, dict(snapshot)), name=f"subscription-refresh:{owner_id}"
        )
        self._tasks[owner_id] = task
        task.add_done_callback(lambda done: self._forget(owner_id, done))
        return task

    def in_flight(self, owner_id: str) -> bool:
        task = self._tasks.get(owner_id)
        return task is not None and not task.done()

    async def drain(self) -> None:
        """Wait until every scheduled cycle has finished."""

        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight cycles, e.g. on application shutdown.

        Commits already running in a worker thread are awaited, not cancelled.
        """

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        if self._commits:
            await asyncio.gather(*self._commits, return_exceptions=True)

    def _commit(
        self, owner_id: str, snapshot: Snapshot, records: Sequence[VendorRecord]
    ) -> asyncio.Future[CycleResult]:
        commit = asyncio.ensure_future(
            asyncio.to_thread(
                self._controller.merge_and_commit,
                owner_id,
                snapshot,
                records,
                mode=SyncMode.MERGE_ONLY,
            )
        )
        self._commits.add(commit)
        commit.add_done_callback(self._commits.discard)
        return commit

    def _forget(self, owner_id: str, task: asyncio.Task[RefreshOutcome]) -> None:
        if self._tasks.get(owner_id) is task:
            del self._tasks[owner_id]

    async def _run(self, owner_id: str, snapshot: Snapshot) -> RefreshOutcome:
        async with self._slots:
            return await self._cycle(owner_id, snapshot)

    async def _cycle(self, owner_id: str, snapshot: Snapshot) -> RefreshOutcome:
        log.info("Refreshing %d subscriptions for owner %s", len(snapshot), owner_id)
        try:
            async with asyncio.timeout(self.timeout_seconds):
                records = await self._gateway.fetch(owner_id, tuple(snapshot))
        except TimeoutError:
            log.warning(
                "Vendor did not answer within %.3fs for owner %s, refresh abandoned",
                self.timeout_seconds,
                owner_id,
            )
            return RefreshOutcome.TIMED_OUT
        except VendorCallError as exc:
            log.warning("Vendor call failed for owner %s, refresh abandoned: %s", owner_id, exc)
            return RefreshOutcome.VENDOR_FAILED
        except Exception:
            log.exception("Vendor call raised unexpectedly for owner %s", owner_id)
            return RefreshOutcome.FAILED

        try:
            cycle = await asyncio.shield(self._commit(owner_id, snapshot, records))
        except SubscriptionConflictError as exc:
            log.warning("Refresh for owner %s lost a concurrent write: %s", owner_id, exc)
            return RefreshOutcome.CONFLICT
        except Exception:
            log.exception("Commit failed for owner %s, refresh rolled back", owner_id)
            return RefreshOutcome.FAILED

        if cycle.merge.is_empty:
            log.info("Refresh for owner %s had nothing to write", owner_id)
            return RefreshOutcome.NOTHING_TO_DO
        log.info(
            "Refresh for owner %s committed %d subscriptions",
            owner_id,
            cycle.summary.updated + cycle.summary.created,
        )
        return RefreshOutcome.COMMITTED
