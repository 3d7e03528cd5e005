"""Protocol interfaces for tfstate abstractions.

Backends satisfy these structurally; runtime_checkable lets tests assert
conformance with isinstance().
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tfstate.models.lock import LockRequest


# ---------------------------------------------------------------------------
# Persistence: State Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IStateStore(Protocol):
    """Transactional state-and-lock store.

    Each mutating method is a single atomic unit: the lock/existence check and
    the write cannot be interleaved by another operation on the same name.
    """

    def get_state(self, name: str) -> str | None: ...

    def update_state(self, name: str, data: str, lock_id: str | None = None) -> None: ...

    def delete_state(self, name: str, force: bool = False) -> None: ...

    def lock_state(self, name: str, lock_request: LockRequest) -> None: ...

    def unlock_state(self, name: str, lock_request: LockRequest) -> None: ...

    def ping(self) -> None: ...

    def close(self) -> None: ...
