"""Door actuator selection."""
from core.config import DoorSettings
from domain.services.door_actuator import DoorActuator

from .http import HttpDoorActuator
from .simulated import SimulatedDoorActuator


def build_door_actuator(cfg: DoorSettings) -> DoorActuator:
    if cfg.driver == "http":
        return HttpDoorActuator(
            cfg.hardware_map,
            timeout=cfg.timeout_seconds,
            max_retries=cfg.max_retries,
        )
    if cfg.driver == "simulated":
        return SimulatedDoorActuator(fail=cfg.simulate_failure, delay_seconds=cfg.simulate_delay_seconds)
    raise ValueError(f"Unknown door driver: {cfg.driver}")
