"""Ports for fetching vendor-side subscription data."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from subsync.domain.model import VendorRecord


@runtime_checkable
class VendorGateway(Protocol):
    """Fetch the vendor's records for one owner.

    Implementations raise :class:`subsync.domain.errors.VendorCallError` on
    failure. The returned batch may be empty, may contain duplicate public ids
    and may reference ids unknown locally.
    """

    async def fetch(
        self, owner_id: str, public_ids: Collection[UUID]
    ) -> Sequence[VendorRecord]: ...


__all__ = ["VendorGateway"]
