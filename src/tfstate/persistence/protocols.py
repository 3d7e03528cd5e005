"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from tfstate.core.protocols import IStateStore

__all__ = ["IStateStore"]
