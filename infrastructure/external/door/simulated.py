"""Simulated door actuator."""
from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque

from core.logging_config import get_logger
from domain.locker.entity import LockerRef
from domain.services.door_actuator import DoorOpenResult
from shared.codes.locker_codes import HARDWARE_SUCCESS_CODE

logger = get_logger(__name__)

DEFAULT_HISTORY_SIZE = 100


class SimulatedDoorActuator:
    """Always reports success unless configured to fail; keeps the most recent opens."""

    name = "simulated"

    def __init__(
        self,
        *,
        fail: bool = False,
        delay_seconds: float = 0.0,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        self.fail = fail
        self.delay_seconds = delay_seconds
        self.opened: Deque[LockerRef] = deque(maxlen=history_size)

    async def open(self, ref: LockerRef) -> DoorOpenResult:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail:
            logger.info("simulated_door_failed", locker=str(ref))
            return DoorOpenResult(success=False, code=500, message="simulated failure")
        self.opened.append(ref)
        logger.info("simulated_door_opened", locker=str(ref))
        return DoorOpenResult(success=True, code=HARDWARE_SUCCESS_CODE, message="ok")
