"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from subsync.domain.ports.persistence import SubscriptionRepository


class IsolationLevel(StrEnum):
    """Transaction isolation requested from the store."""

    DEFAULT = "default"
    SERIALIZABLE = "SERIALIZABLE"


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...  # the repo list itself should be immutable

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def flush(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class SubscriptionRepositories(RepositoryCollection):
    """Repositories required to reconcile subscriptions."""

    subscriptions: SubscriptionRepository


type SubscriptionUnitOfWork = UnitOfWork[SubscriptionRepositories]
type UnitOfWorkFactory = Callable[[IsolationLevel], SubscriptionUnitOfWork]
