"""Pure merge of a vendor batch into a local snapshot."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from subsync.domain.model import Subscription, utcnow

from .contracts import InvalidRecord, MergeResult, SyncMode

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime
    from uuid import UUID

    from subsync.domain.model import Snapshot, VendorRecord

log = getLogger(__name__)


class ReconciliationEngine:
    """Merge vendor records into local subscriptions keyed by ``public_id``.

    The engine never touches storage and never mutates the snapshot it is
    given. Within one batch the first record for a ``public_id`` wins; later
    records with the same id are reported as duplicates without being looked
    at, even when the first one turned out to be invalid.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    def merge(
        self,
        owner_id: str,
        snapshot: Snapshot,
        batch: Iterable[VendorRecord],
        *,
        mode: SyncMode = SyncMode.MERGE_ONLY,
    ) -> MergeResult:
        merged_at = self._clock()
        seen: set[UUID] = set()
        updates: list[Subscription] = []
        creates: list[Subscription] = []
        duplicates: list[UUID] = []
        unknown: list[UUID] = []
        invalid: list[InvalidRecord] = []

        for record in batch:
            if record.public_id in seen:
                duplicates.append(record.public_id)
                continue
            seen.add(record.public_id)

            missing = record.missing_fields()
            if missing:
                invalid.append(InvalidRecord(record.public_id, missing))
                continue

            existing = snapshot.get(record.public_id)
            if existing is not None:
                updates.append(existing.with_vendor_fields(record, merged_at=merged_at))
            elif mode is SyncMode.FULL_SYNC:
                creates.append(
                    Subscription.from_vendor_record(
                        record, owner_id=owner_id, created_at=merged_at
                    )
                )
            else:
                unknown.append(record.public_id)

        result = MergeResult(
            merged_at=merged_at,
            updates=tuple(updates),
            creates=tuple(creates),
            duplicates=tuple(duplicates),
            unknown=tuple(unknown),
            invalid=tuple(invalid),
        )
        _log_anomalies(owner_id, result)
        return result


def _log_anomalies(owner_id: str, result: MergeResult) -> None:
    if result.duplicates:
        log.warning(
            "Dropped %d duplicate vendor records for owner %s: %s",
            len(result.duplicates),
            owner_id,
            ", ".join(str(public_id) for public_id in result.duplicates),
        )
    if result.unknown:
        log.warning(
            "Vendor returned %d subscriptions unknown to owner %s: %s",
            len(result.unknown),
            owner_id,
            ", ".join(str(public_id) for public_id in result.unknown),
        )
    for record in result.invalid:
        log.warning(
            "Excluded vendor record %s for owner %s, missing %s",
            record.public_id,
            owner_id,
            ", ".join(record.missing),
        )
