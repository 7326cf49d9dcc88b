"""SQLAlchemy-backed units of work for subscriptions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from subsync.adapters.sqlalchemy.mappings import start_mappers
from subsync.adapters.sqlalchemy.migrations import upgrade_head
from subsync.adapters.sqlalchemy.repositories import SqlAlchemySubscriptionRepository
from subsync.config.storage import get_database_config
from subsync.domain.ports import (
    ConcurrentWriteError,
    IsolationLevel,
    RepositoryCollection,
    SubscriptionRepositories,
)

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

log = getLogger(__name__)

# SQLSTATEs (PostgreSQL and others)
_SERIALIZATION_FAILURE: Final[str] = "40001"
_UNIQUE_VIOLATION: Final[str] = "23505"


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call subsync.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, run migrations and map the model."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is None:
        settings = get_database_config(uri=database_uri)
        engine = create_engine(settings.uri, **settings.engine_options())
    enable_sqlite_transactions(engine)
    start_mappers()
    upgrade_head(engine=engine)
    _STATE.engine = engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


def _sqlite_connect(dbapi_connection: Any, _connection_record: Any) -> None:
    # stop pysqlite from issuing its own BEGIN/COMMIT
    dbapi_connection.isolation_level = None


def _sqlite_begin(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN")


def enable_sqlite_transactions(engine: Engine) -> None:
    """Make SQLite transactions start at the first statement, reads included.

    pysqlite otherwise defers BEGIN until the first write, so a unit of work's
    reads would not share the snapshot its writes are checked against.
    """

    if engine.dialect.name != "sqlite" or event.contains(engine, "begin", _sqlite_begin):
        return
    event.listen(engine, "connect", _sqlite_connect)
    event.listen(engine, "begin", _sqlite_begin)


def _sqlstate(exc: DBAPIError) -> str | None:
    return getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)


def _is_concurrent_write(exc: DBAPIError) -> bool:
    message = str(exc.orig)
    if isinstance(exc, IntegrityError):
        return "UNIQUE constraint failed" in message or _sqlstate(exc) == _UNIQUE_VIOLATION
    if isinstance(exc, OperationalError) and "database is locked" in message:
        return True
    return _sqlstate(exc) == _SERIALIZATION_FAILURE


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    With ``isolation_level`` other than ``DEFAULT`` the session's connection is
    opened at that level, so every statement of the unit runs in one
    transaction at the requested isolation.
    """

    def __init__(self, isolation_level: IsolationLevel = IsolationLevel.DEFAULT) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self.isolation_level = isolation_level
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        if self.isolation_level is not IsolationLevel.DEFAULT:
            self.session.connection(
                execution_options={"isolation_level": self.isolation_level.value}
            )
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def flush(self) -> None:
        try:
            self.session.flush()
        except DBAPIError as exc:
            self._raise_translated(exc)

    def commit(self) -> None:
        try:
            self.session.commit()
        except DBAPIError as exc:
            self._raise_translated(exc)

    def rollback(self) -> None:
        self.session.rollback()

    def _raise_translated(self, exc: DBAPIError) -> None:
        self.rollback()
        if _is_concurrent_write(exc):
            log.info("Concurrent write rejected by the store: %s", exc.orig)
            raise ConcurrentWriteError(str(exc.orig)) from exc
        log.error("Store rejected the unit of work: %s", exc.orig)
        raise exc

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemySubscriptionUnitOfWork(BaseSqlAlchemyUnitOfWork[SubscriptionRepositories]):
    """Unit of work managing SQLAlchemy sessions for subscriptions."""

    def _build_repositories(self, session: Session) -> SubscriptionRepositories:
        return SubscriptionRepositories(
            subscriptions=SqlAlchemySubscriptionRepository(session),
        )


if TYPE_CHECKING:
    from subsync.domain.ports import SubscriptionUnitOfWork

    _uow_check: SubscriptionUnitOfWork = SqlAlchemySubscriptionUnitOfWork()
