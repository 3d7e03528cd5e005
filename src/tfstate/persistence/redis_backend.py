"""Redis state store implementing IStateStore.

Each state is one hash. Mutations WATCH the hash, read it, apply the
StateRecord transition and commit with MULTI/EXEC; a concurrent write to the
same hash aborts EXEC with WatchError and the operation re-reads and retries.
"""

from __future__ import annotations

from typing import Callable, Union

import redis
import structlog
from pydantic import ValidationError
from redis.exceptions import WatchError

from tfstate.core.exceptions import StorageError
from tfstate.core.types import validate_state_name
from tfstate.models.lock import LockRequest
from tfstate.models.state import StateRecord

logger = structlog.get_logger(__name__)


class _Delete:
    """Marker returned by a mutation that removes the record."""


DELETE = _Delete()

# new record to write, DELETE, or None when nothing changes
Mutation = Union[StateRecord, _Delete, None]


class RedisStateStore:
    """Production IStateStore backed by Redis."""

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 key_prefix: str = "tfstate:", max_retries: int = 50) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._key_prefix = key_prefix
        self._max_retries = max_retries
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, name: str) -> str:
        return f"{self._key_prefix}{name}"

    @staticmethod
    def _encode(record: StateRecord) -> dict[str, str]:
        fields = {"name": record.name, "locked": "1" if record.locked else "0"}
        if record.data is not None:
            fields["data"] = record.data
        if record.locked:
            fields["lock_id"] = record.lock_id
            fields["lock_data"] = record.lock_data
        return fields

    @staticmethod
    def _decode(name: str, fields: dict[str, str]) -> StateRecord | None:
        if not fields:
            return None
        try:
            return StateRecord(
                name=name,
                data=fields.get("data"),
                locked=fields.get("locked") == "1",
                lock_id=fields.get("lock_id"),
                lock_data=fields.get("lock_data"),
            )
        except ValidationError as exc:
            raise StorageError(f"Corrupt state hash for {name!r}: {exc}") from exc

    def _transact(self, op: str, name: str,
                  mutate: Callable[[StateRecord | None], Mutation]) -> None:
        key = self._key(name)
        try:
            with self._client.pipeline() as pipe:
                for attempt in range(1, self._max_retries + 1):
                    try:
                        pipe.watch(key)
                        change = mutate(self._decode(name, pipe.hgetall(key)))
                        if change is None:
                            return
                        pipe.multi()
                        pipe.delete(key)
                        if isinstance(change, StateRecord):
                            pipe.hset(key, mapping=self._encode(change))
                        pipe.execute()
                        return
                    except WatchError:
                        logger.debug("redis_watch_conflict", op=op, state=name, attempt=attempt)
                        continue
        except redis.RedisError as exc:
            raise StorageError(f"Redis {op} failed for state={name!r}: {exc}") from exc
        raise StorageError(f"Redis {op} for state={name!r} gave up after {self._max_retries} conflicts")

    # ---- IStateStore methods ----

    def get_state(self, name: str) -> str | None:
        validate_state_name(name)
        try:
            return self._client.hget(self._key(name), "data")
        except redis.RedisError as exc:
            raise StorageError(f"Redis HGET failed for state={name!r}: {exc}") from exc

    def update_state(self, name: str, data: str, lock_id: str | None = None) -> None:
        validate_state_name(name)
        self._transact(
            "update", name,
            lambda current: (current or StateRecord(name=name)).write(data, lock_id),
        )

    def delete_state(self, name: str, force: bool = False) -> None:
        validate_state_name(name)

        def _delete(current: StateRecord | None) -> Mutation:
            if current is None:
                return None
            current.check_deletable(force)
            return DELETE

        self._transact("delete", name, _delete)
        logger.info("state_deleted", state=name, force=force)

    def lock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)
        self._transact(
            "lock", name,
            lambda current: (current or StateRecord(name=name)).lock(lock_request),
        )
        logger.info("state_locked", state=name, lock_id=lock_request.id)

    def unlock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)
        self._transact(
            "unlock", name,
            lambda current: (current or StateRecord(name=name)).unlock(lock_request),
        )
        logger.info("state_unlocked", state=name, lock_id=lock_request.id)

    def ping(self) -> None:
        try:
            self._client.ping()
        except redis.RedisError as exc:
            raise StorageError(f"Redis PING failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()
