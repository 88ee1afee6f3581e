"""
Door actuator abstraction.

The coordinator talks to cabinet hardware only through this protocol so the
simulated driver and the HTTP bridge are interchangeable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from domain.locker.entity import LockerRef


@dataclass(frozen=True)
class DoorOpenResult:
    """Outcome reported by the cabinet controller."""

    success: bool
    code: int
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class DoorActuator(Protocol):
    """Opens a single door. Raises HardwareFailureException on transport errors."""

    name: str

    async def open(self, ref: LockerRef) -> DoorOpenResult: ...
