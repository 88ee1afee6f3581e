"""
Door actuator drivers.

Exports:
- SimulatedDoorActuator: in-process driver for development and tests
- HttpDoorActuator: posts openDoor commands to cabinet controllers (httpx + tenacity)
- build_door_actuator: select a driver from settings
"""
from .simulated import SimulatedDoorActuator
from .http import HttpDoorActuator
from .factory import build_door_actuator

__all__ = ["SimulatedDoorActuator", "HttpDoorActuator", "build_door_actuator"]
