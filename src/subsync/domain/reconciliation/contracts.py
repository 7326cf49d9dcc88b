"""Value types shared by the reconciliation components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from subsync.domain.model import Subscription


class SyncMode(StrEnum):
    """How vendor records without a local counterpart are treated."""

    MERGE_ONLY = "merge-only"
    FULL_SYNC = "full-sync"


class IsolationMode(StrEnum):
    """How the controller isolates a cycle's read from its write."""

    SERIALIZABLE = "serializable"
    BEST_EFFORT = "best-effort"


@dataclass(frozen=True, slots=True)
class InvalidRecord:
    public_id: UUID
    missing: tuple[str, ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeResult:
    """Outcome of merging one vendor batch into an owner's snapshot.

    ``updates`` hold merged copies of existing records, ``creates`` hold new
    records (full sync only). The remaining tuples list what was dropped.
    """

    merged_at: datetime
    updates: tuple[Subscription, ...] = ()
    creates: tuple[Subscription, ...] = ()
    duplicates: tuple[UUID, ...] = ()
    unknown: tuple[UUID, ...] = ()
    invalid: tuple[InvalidRecord, ...] = ()

    @property
    def writes(self) -> int:
        return len(self.updates) + len(self.creates)

    @property
    def is_empty(self) -> bool:
        return self.writes == 0

    @property
    def partition(self) -> tuple[Subscription, ...]:
        return self.updates + self.creates


@dataclass(frozen=True, slots=True)
class CommitSummary:
    updated: int = 0
    created: int = 0
    skipped: tuple[UUID, ...] = ()


@dataclass(frozen=True, slots=True)
class CycleResult:
    """Result of a full-sync cycle: what was merged, written and read back."""

    merge: MergeResult
    summary: CommitSummary
    subscriptions: Sequence[Subscription] = field(default_factory=tuple)
