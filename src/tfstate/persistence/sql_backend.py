"""SQL state store backed by SQLAlchemy Core.

Every operation runs inside ``engine.begin()``: the row is read and written in
the same transaction and any exception rolls the transaction back. SQLite
transactions are opened with ``BEGIN IMMEDIATE`` so the initial read already
holds the database write lock; other engines lock the row with
``SELECT ... FOR UPDATE``. Two transactions racing to insert the same new name
collide on the primary key, and the loser re-runs against the committed row.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager, nullcontext
from typing import Callable, Iterator, TypeVar

import structlog
from pydantic import ValidationError
from sqlalchemy import (
    Boolean,
    Column,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from tfstate.core.exceptions import StorageError
from tfstate.core.types import validate_state_name
from tfstate.models.lock import LockRequest
from tfstate.models.state import StateRecord

logger = structlog.get_logger(__name__)

T = TypeVar("T")

metadata = MetaData()

states = Table(
    "states",
    metadata,
    Column("name", String(100), primary_key=True),
    Column("data", Text, nullable=True),
    Column("locked", Boolean, nullable=False, default=False),
    Column("lock_id", String(50), nullable=True),
    Column("lock_data", Text, nullable=True),
)


def _use_immediate_transactions(engine: Engine) -> None:
    """Make pysqlite emit BEGIN IMMEDIATE instead of its deferred BEGIN."""

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SQLStateStore:
    """Production IStateStore on any SQLAlchemy-supported database."""

    INSERT_RACE_RETRIES = 3

    def __init__(self, url: str = "sqlite:///tfstate.db", echo: bool = False,
                 busy_timeout: float = 30.0, create_schema: bool = True) -> None:
        self._url = make_url(url)
        kwargs: dict = {"echo": echo}
        self._serial = None
        if self._url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"timeout": busy_timeout, "check_same_thread": False}
            if self._url.database in (None, "", ":memory:"):
                # one shared connection; transactions must not overlap on it
                kwargs["poolclass"] = StaticPool
                self._serial = threading.Lock()
        self._engine = create_engine(self._url, **kwargs)
        if self._url.get_backend_name() == "sqlite":
            _use_immediate_transactions(self._engine)
        if create_schema:
            try:
                metadata.create_all(self._engine)
            except SQLAlchemyError as exc:
                raise StorageError(f"Failed to create state schema: {exc}") from exc
        logger.info("sql_store_ready", backend=self._url.get_backend_name(), database=self._url.database)

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        with self._serial or nullcontext():
            with self._engine.begin() as conn:
                yield conn

    def _run(self, op: str, name: str, fn: Callable[[Connection], T]) -> T:
        """Run ``fn`` in one transaction, retrying primary-key insert races."""
        attempt = 0
        while True:
            attempt += 1
            try:
                with self._transaction() as conn:
                    return fn(conn)
            except IntegrityError as exc:
                if attempt >= self.INSERT_RACE_RETRIES:
                    raise StorageError(f"SQL {op} failed for state={name!r}: {exc}") from exc
                logger.debug("sql_insert_race", op=op, state=name, attempt=attempt)
            except SQLAlchemyError as exc:
                raise StorageError(f"SQL {op} failed for state={name!r}: {exc}") from exc

    def _load(self, conn: Connection, name: str) -> StateRecord | None:
        stmt = select(states).where(states.c.name == name).with_for_update()
        row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        try:
            return StateRecord(
                name=row["name"],
                data=row["data"],
                locked=bool(row["locked"]),
                lock_id=row["lock_id"],
                lock_data=row["lock_data"],
            )
        except ValidationError as exc:
            raise StorageError(f"Corrupt state row for {name!r}: {exc}") from exc

    def _save(self, conn: Connection, existed: bool, record: StateRecord) -> None:
        values = record.model_dump(exclude={"name"})
        if existed:
            conn.execute(update(states).where(states.c.name == record.name).values(**values))
        else:
            conn.execute(insert(states).values(name=record.name, **values))

    # ---- IStateStore methods ----

    def get_state(self, name: str) -> str | None:
        validate_state_name(name)

        def _get(conn: Connection) -> str | None:
            return conn.execute(select(states.c.data).where(states.c.name == name)).scalar()

        return self._run("get", name, _get)

    def update_state(self, name: str, data: str, lock_id: str | None = None) -> None:
        validate_state_name(name)

        def _update(conn: Connection) -> None:
            current = self._load(conn, name)
            record = (current or StateRecord(name=name)).write(data, lock_id)
            self._save(conn, current is not None, record)

        self._run("update", name, _update)
        logger.debug("state_updated", state=name, size=len(data))

    def delete_state(self, name: str, force: bool = False) -> None:
        validate_state_name(name)

        def _delete(conn: Connection) -> None:
            current = self._load(conn, name)
            if current is None:
                return
            current.check_deletable(force)
            conn.execute(delete(states).where(states.c.name == name))

        self._run("delete", name, _delete)
        logger.info("state_deleted", state=name, force=force)

    def lock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)

        def _lock(conn: Connection) -> None:
            current = self._load(conn, name)
            record = (current or StateRecord(name=name)).lock(lock_request)
            self._save(conn, current is not None, record)

        self._run("lock", name, _lock)
        logger.info("state_locked", state=name, lock_id=lock_request.id)

    def unlock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)

        def _unlock(conn: Connection) -> None:
            current = self._load(conn, name)
            record = (current or StateRecord(name=name)).unlock(lock_request)
            self._save(conn, True, record)

        self._run("unlock", name, _unlock)
        logger.info("state_unlocked", state=name, lock_id=lock_request.id)

    def ping(self) -> None:
        try:
            with self._serial or nullcontext():
                with self._engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StorageError(f"SQL ping failed: {exc}") from exc

    def close(self) -> None:
        self._engine.dispose()
