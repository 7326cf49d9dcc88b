"""Ports for persisting subscriptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from subsync.domain.model import Subscription


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class SubscriptionRepository(Repository["Subscription"], Protocol):
    """Persistence contract for subscriptions, scoped by owner."""

    def get(self, storage_id: int) -> Subscription | None: ...

    def find_by_owner(self, owner_id: str) -> Sequence[Subscription]: ...

    def find_by_owner_and_ids(
        self, owner_id: str, public_ids: Collection[UUID]
    ) -> Sequence[Subscription]: ...


class ConcurrentWriteError(RuntimeError):
    """Raised by a unit of work when the store rejects a write as conflicting.

    Covers uniqueness violations and serialization failures reported by the
    backing database.
    """
