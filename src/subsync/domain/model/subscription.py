"""Locally persisted subscription records."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable
    from decimal import Decimal
    from uuid import UUID

    from .vendor import VendorRecord

VENDOR_FIELDS: Final[tuple[str, ...]] = (
    "vendor_status",
    "vendor_balance",
    "last_sync_time",
    "usage_count",
    "logo_url",
    "brand",
)
UNKNOWN_OFFER_ID: Final[str] = "UNKNOWN"
_TICK: Final[timedelta] = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(UTC)


def advance_timestamp(previous: datetime | None, now: datetime) -> datetime:
    """Return ``now`` unless it does not move past ``previous``.

    Keeps ``updated_at`` strictly increasing even when the wall clock stalls or
    steps backwards between two merges.
    """

    if previous is None or now > previous:
        return now
    return previous + _TICK


@dataclass(eq=False, kw_only=True)
class Subscription:
    """A customer's subscription as stored locally.

    ``public_id`` is the join key against vendor data. The vendor-sourced fields
    stay ``None`` until the first successful reconciliation and are only ever
    written through :meth:`with_vendor_fields`.
    """

    id: int | None = None
    public_id: UUID
    owner_id: str
    offer_id: str
    status: str
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    vendor_status: str | None = None
    vendor_balance: Decimal | None = None
    last_sync_time: datetime | None = None
    usage_count: int | None = None
    logo_url: str | None = None
    brand: str | None = None

    @classmethod
    def from_vendor_record(
        cls,
        record: VendorRecord,
        *,
        owner_id: str,
        created_at: datetime,
    ) -> Subscription:
        """Materialise a local record for a vendor-only subscription."""

        if record.vendor_status is None or record.vendor_balance is None:
            raise ValueError(f"Vendor record {record.public_id} lacks status or balance")
        return cls(
            public_id=record.public_id,
            owner_id=owner_id,
            offer_id=record.offer_id or UNKNOWN_OFFER_ID,
            status=record.vendor_status,
            balance=record.vendor_balance,
            created_at=created_at,
            updated_at=created_at,
            vendor_status=record.vendor_status,
            vendor_balance=record.vendor_balance,
            last_sync_time=record.sync_timestamp,
            usage_count=record.usage_count,
            logo_url=record.logo_url,
            brand=record.brand,
        )

    def with_vendor_fields(self, record: VendorRecord, *, merged_at: datetime) -> Subscription:
        """Return a copy carrying the vendor's view of this subscription."""

        if record.public_id != self.public_id:
            raise ValueError(
                f"Cannot merge vendor record {record.public_id} into subscription {self.public_id}"
            )
        return replace(
            self,
            vendor_status=record.vendor_status,
            vendor_balance=record.vendor_balance,
            last_sync_time=record.sync_timestamp,
            usage_count=record.usage_count,
            logo_url=record.logo_url,
            brand=record.brand,
            updated_at=advance_timestamp(self.updated_at, merged_at),
        )

    def with_owner_fields(
        self,
        *,
        changed_at: datetime,
        offer_id: str | None = None,
        status: str | None = None,
        balance: Decimal | None = None,
    ) -> Subscription:
        """Return a copy with owner-managed fields changed; vendor fields stay put."""

        return replace(
            self,
            offer_id=self.offer_id if offer_id is None else offer_id,
            status=self.status if status is None else status,
            balance=self.balance if balance is None else balance,
            updated_at=advance_timestamp(self.updated_at, changed_at),
        )

    def vendor_view(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in VENDOR_FIELDS}

    def copy_vendor_fields_from(self, other: Subscription) -> None:
        """Write ``other``'s vendor-sourced fields and ``updated_at`` onto ``self``.

        Used by persistence adapters to apply a merged copy onto the stored row.
        """

        for name in VENDOR_FIELDS:
            setattr(self, name, getattr(other, name))
        self.updated_at = advance_timestamp(self.updated_at, other.updated_at)


type Snapshot = dict[UUID, Subscription]


def snapshot_of(subscriptions: Iterable[Subscription]) -> Snapshot:
    return {subscription.public_id: subscription for subscription in subscriptions}
