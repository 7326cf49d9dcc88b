"""SQLAlchemy mapping metadata for the subsync domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from subsync.domain.model import Subscription
log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]
MoneyColumnType = Numeric(18, 2, asdecimal=True)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

subscription_table = Table(
    "subscription",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", UUIDColumnType, nullable=False),
    Column("owner_id", String(128), nullable=False),
    Column("offer_id", String(128), nullable=False),
    Column("status", String(64), nullable=False),
    Column("balance", MoneyColumnType, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    # vendor-sourced
    Column("vendor_status", String(64), nullable=True),
    Column("vendor_balance", MoneyColumnType, nullable=True),
    Column("last_sync_time", UTCDateTime(), nullable=True),
    Column("usage_count", Integer, nullable=True),
    Column("logo_url", String(2048), nullable=True),
    Column("brand", String(255), nullable=True),
    UniqueConstraint("public_id", name="uq_subscription_public_id"),
    Index("ix_subscription_owner_id", "owner_id"),
    Index("ix_subscription_offer_id", "offer_id"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Subscription, subscription_table)

    configure_mappers()
    return mapper_registry
