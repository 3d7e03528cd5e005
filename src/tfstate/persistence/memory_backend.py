"""In-memory state store: dict-backed, for unit tests and local runs."""

from __future__ import annotations

import threading

import structlog

from tfstate.core.types import validate_state_name
from tfstate.models.lock import LockRequest
from tfstate.models.state import StateRecord

logger = structlog.get_logger(__name__)


class MemoryStateStore:
    """Dict-backed IStateStore.

    A single mutex makes each operation's check-then-write atomic. Records are
    stored as immutable StateRecord values, so a raised transition leaves the
    dict untouched.
    """

    def __init__(self) -> None:
        self._records: dict[str, StateRecord] = {}
        self._mutex = threading.Lock()

    def _load(self, name: str) -> StateRecord:
        return self._records.get(name) or StateRecord(name=name)

    def get_state(self, name: str) -> str | None:
        validate_state_name(name)
        with self._mutex:
            record = self._records.get(name)
        return record.data if record is not None else None

    def update_state(self, name: str, data: str, lock_id: str | None = None) -> None:
        validate_state_name(name)
        with self._mutex:
            self._records[name] = self._load(name).write(data, lock_id)

    def delete_state(self, name: str, force: bool = False) -> None:
        validate_state_name(name)
        with self._mutex:
            record = self._records.get(name)
            if record is None:
                return
            record.check_deletable(force)
            del self._records[name]
        logger.info("state_deleted", state=name, force=force)

    def lock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)
        with self._mutex:
            self._records[name] = self._load(name).lock(lock_request)
        logger.info("state_locked", state=name, lock_id=lock_request.id)

    def unlock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)
        with self._mutex:
            self._records[name] = self._load(name).unlock(lock_request)
        logger.info("state_unlocked", state=name, lock_id=lock_request.id)

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None
