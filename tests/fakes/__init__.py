"""Shared test doubles: the memory store plus a store that always fails."""

from __future__ import annotations

from tfstate.core.exceptions import StorageError
from tfstate.models.lock import LockRequest
from tfstate.persistence.memory_backend import MemoryStateStore


class BrokenStateStore:
    """IStateStore whose every call fails like an unreachable database."""

    def _fail(self, *args, **kwargs):
        raise StorageError("database is unreachable")

    get_state = _fail
    update_state = _fail
    delete_state = _fail
    ping = _fail

    def lock_state(self, name: str, lock_request: LockRequest) -> None:
        self._fail()

    def unlock_state(self, name: str, lock_request: LockRequest) -> None:
        self._fail()

    def close(self) -> None:
        return None


__all__ = ["BrokenStateStore", "MemoryStateStore"]
