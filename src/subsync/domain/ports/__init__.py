"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import VendorGateway
from .persistence import ConcurrentWriteError, Repository, SubscriptionRepository
from .unit_of_work import (
    IsolationLevel,
    RepositoryCollection,
    SubscriptionRepositories,
    SubscriptionUnitOfWork,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "ConcurrentWriteError",
    "IsolationLevel",
    "Repository",
    "RepositoryCollection",
    "SubscriptionRepositories",
    "SubscriptionRepository",
    "SubscriptionUnitOfWork",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "VendorGateway",
]
