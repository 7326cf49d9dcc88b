"""Public domain model surface."""

from __future__ import annotations

from .subscription import (
    UNKNOWN_OFFER_ID,
    VENDOR_FIELDS,
    Snapshot,
    Subscription,
    advance_timestamp,
    snapshot_of,
    utcnow,
)
from .vendor import REQUIRED_VENDOR_FIELDS, VendorRecord

__all__ = [
    "REQUIRED_VENDOR_FIELDS",
    "UNKNOWN_OFFER_ID",
    "VENDOR_FIELDS",
    "Snapshot",
    "Subscription",
    "VendorRecord",
    "advance_timestamp",
    "snapshot_of",
    "utcnow",
]
