"""Transient records produced by the subscription vendor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal
    from uuid import UUID

REQUIRED_VENDOR_FIELDS: Final[tuple[str, ...]] = ("vendor_status", "vendor_balance")


@dataclass(frozen=True, slots=True, kw_only=True)
class VendorRecord:
    """One vendor-side view of a subscription, keyed by ``public_id``.

    Lives for one reconciliation cycle only; it is never persisted as-is.
    """

    public_id: UUID
    vendor_status: str | None = None
    vendor_balance: Decimal | None = None
    sync_timestamp: datetime | None = None
    usage_count: int | None = None
    logo_url: str | None = None
    brand: str | None = None
    offer_id: str | None = None

    def missing_fields(self) -> tuple[str, ...]:
        return tuple(name for name in REQUIRED_VENDOR_FIELDS if getattr(self, name) is None)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()
