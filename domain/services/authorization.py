"""
Admin authorization port.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class AdminPolicy(Protocol):
    """Decides whether a caller identity may use admin operations."""

    def is_admin(self, identity: Optional[str]) -> bool: ...
