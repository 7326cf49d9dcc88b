"""Subscription endpoints."""

from __future__ import annotations

from logging import getLogger
from typing import Annotated, Final

from fastapi import APIRouter, Depends, Header, Request

from subsync.domain.errors import ErrorKind, SubscriptionError
from subsync.domain.subscription_sync import SubscriptionSync

from .schemas import SubscriptionResponse

log = getLogger(__name__)

OWNER_HEADER: Final[str] = "AUTH-USER-ID"

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def get_subscription_sync(request: Request) -> SubscriptionSync:
    return request.app.state.subscription_sync


def require_owner(
    owner_id: Annotated[str | None, Header(alias=OWNER_HEADER)] = None,
) -> str:
    if owner_id is None or not owner_id.strip():
        raise SubscriptionError(ErrorKind.MISSING_OWNER_HEADER, params={"header": OWNER_HEADER})
    return owner_id.strip()


OwnerId = Annotated[str, Depends(require_owner)]
Sync = Annotated[SubscriptionSync, Depends(get_subscription_sync)]


@router.get("", response_model=list[SubscriptionResponse])
async def list_subscriptions(owner_id: OwnerId, sync: Sync) -> list[SubscriptionResponse]:
    """Return the stored subscriptions; a vendor refresh runs in the background."""

    subscriptions = await sync.read(owner_id)
    return [SubscriptionResponse.from_domain(subscription) for subscription in subscriptions]


@router.post("/sync", response_model=list[SubscriptionResponse])
async def sync_subscriptions(owner_id: OwnerId, sync: Sync) -> list[SubscriptionResponse]:
    """Synchronise with the vendor and return the merged subscriptions."""

    cycle = await sync.full_sync(owner_id)
    log.info(
        "Sync for owner %s: %d updated, %d created, %d duplicates, %d invalid",
        owner_id,
        cycle.summary.updated,
        cycle.summary.created,
        len(cycle.merge.duplicates),
        len(cycle.merge.invalid),
    )
    return [SubscriptionResponse.from_domain(subscription) for subscription in cycle.subscriptions]
