"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from subsync.adapters.sqlalchemy.mappings import subscription_table
from subsync.domain.model import Subscription

if TYPE_CHECKING:
    from collections.abc import Collection
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemySubscriptionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Subscription) -> None:
        self.session.add(entity)

    def get(self, storage_id: int) -> Subscription | None:
        return self.session.get(Subscription, storage_id)

    def find_by_owner(self, owner_id: str) -> list[Subscription]:
        stmt = (
            select(Subscription)
            .where(subscription_table.c.owner_id == owner_id)
            .order_by(subscription_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def find_by_owner_and_ids(
        self, owner_id: str, public_ids: Collection[UUID]
    ) -> list[Subscription]:
        if not public_ids:
            return []
        stmt = (
            select(Subscription)
            .where(subscription_table.c.owner_id == owner_id)
            .where(subscription_table.c.public_id.in_(list(public_ids)))
            .order_by(subscription_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

