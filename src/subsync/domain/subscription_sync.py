"""Application services for reading and synchronising subscriptions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from subsync.domain.errors import ErrorClassifier, VendorCallError

if TYPE_CHECKING:
    from subsync.domain.model import Subscription
    from subsync.domain.ports import VendorGateway
    from subsync.domain.reconciliation import (
        BackgroundRefresher,
        ConsistencyController,
        CycleResult,
        RefreshOutcome,
    )

log = getLogger(__name__)


@dataclass(slots=True)
class SubscriptionSync:
    """Entry points used by the HTTP surface and the CLI.

    ``gateway`` serves the synchronous full-sync path; the ``refresher`` owns
    its own gateway for background cycles.
    """

    gateway: VendorGateway
    controller: ConsistencyController
    refresher: BackgroundRefresher
    classifier: ErrorClassifier = field(default_factory=ErrorClassifier)

    async def read(self, owner_id: str) -> tuple[Subscription, ...]:
        """Return the stored snapshot now and refresh it in the background."""

        snapshot = await asyncio.to_thread(self.controller.read_snapshot, owner_id)
        self.refresher.schedule(owner_id, snapshot)
        return tuple(snapshot.values())

    async def refresh(self, owner_id: str) -> RefreshOutcome:
        """Run one background-style cycle for ``owner_id`` and wait for it."""

        snapshot = await asyncio.to_thread(self.controller.read_snapshot, owner_id)
        return await self.refresher.schedule(owner_id, snapshot)

    async def full_sync(self, owner_id: str) -> CycleResult:
        """Fetch from the vendor, merge creating missing rows, and commit.

        Vendor failures are classified and raised as ``SubscriptionError``.
        """

        known = await asyncio.to_thread(self.controller.read_snapshot, owner_id)
        log.info("Starting full sync for owner %s (%d known)", owner_id, len(known))
        try:
            records = await self.gateway.fetch(owner_id, tuple(known))
        except VendorCallError as exc:
            error = self.classifier.classify(exc, customer_id=owner_id)
            log.log(error.log_level, "Full sync for owner %s failed: %s", owner_id, error.message)
            raise error from exc
        return await asyncio.to_thread(self.controller.full_sync, owner_id, records)

    async def aclose(self) -> None:
        await self.refresher.aclose()
