from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from subsync.adapters.sqlalchemy import start_mappers
from subsync.adapters.sqlalchemy.migrations import upgrade_head
from subsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySubscriptionUnitOfWork,
    shutdown,
    startup,
)
from subsync.domain.ports import IsolationLevel

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from subsync.domain.model import Subscription
    from subsync.domain.ports import UnitOfWorkFactory


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # file-backed so worker threads share one database
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'subsync.db'}", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def unit_of_work_factory(sqlite_engine: Engine) -> Iterator[UnitOfWorkFactory]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemySubscriptionUnitOfWork
    finally:
        shutdown()


@pytest.fixture
def seed(unit_of_work_factory: UnitOfWorkFactory) -> Callable[..., list[Subscription]]:
    def _seed(*subscriptions: Subscription) -> list[Subscription]:
        with unit_of_work_factory(IsolationLevel.DEFAULT) as uow:
            for subscription in subscriptions:
                uow.repositories.subscriptions.add(subscription)
            uow.commit()
        return list(subscriptions)

    return _seed


@pytest.fixture
def load_owner(unit_of_work_factory: UnitOfWorkFactory) -> Callable[[str], list[Subscription]]:
    def _load(owner_id: str) -> list[Subscription]:
        with unit_of_work_factory(IsolationLevel.DEFAULT) as uow:
            return list(uow.repositories.subscriptions.find_by_owner(owner_id))

    return _load
