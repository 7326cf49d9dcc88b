"""SQLAlchemy adapter package for subsync."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers, subscription_table
from .repositories import SqlAlchemySubscriptionRepository
from .unit_of_work import (
    SqlAlchemySubscriptionUnitOfWork,
    StartupError,
    enable_sqlite_transactions,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemySubscriptionUnitOfWork",
    "StartupError",
    "enable_sqlite_transactions",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
    "subscription_table",
]
