"""Response models for the HTTP surface."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from subsync.domain.model import Subscription


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionResponse(ApiModel):
    id: int | None
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
    def from_domain(cls, subscription: Subscription) -> SubscriptionResponse:
        return cls(
            id=subscription.id,
            public_id=subscription.public_id,
            owner_id=subscription.owner_id,
            offer_id=subscription.offer_id,
            status=subscription.status,
            balance=subscription.balance,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
            vendor_status=subscription.vendor_status,
            vendor_balance=subscription.vendor_balance,
            last_sync_time=subscription.last_sync_time,
            usage_count=subscription.usage_count,
            logo_url=subscription.logo_url,
            brand=subscription.brand,
        )
