"""
Locker/order specific codes and hardware response mapping.
"""
from __future__ import annotations

from enum import IntEnum


class LockerCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Locker errors (21xxx)
    LOCKER_NOT_FOUND = 21000
    LOCKER_NOT_FREE = 21001
    LOCKER_ORDER_MISMATCH = 21002
    LOCKER_CONFLICT = 21003
    LOCKER_ALREADY_EXISTS = 21004

    # Order errors (22xxx)
    ORDER_NOT_FOUND = 22000
    ORDER_INVALID_STATE = 22001
    ORDER_CONFLICT = 22002

    # Account errors (23xxx)
    ACCOUNT_NOT_FOUND = 23000
    INSUFFICIENT_DEPOSIT = 23001

    # Device errors (24xxx)
    DEVICE_NOT_FOUND = 24000
    DEVICE_ALREADY_EXISTS = 24001

    # Hardware errors (25xxx)
    DOOR_OPEN_FAILED = 25000
    DOOR_OPEN_TIMEOUT = 25001


# Door controller reports success with this code in its JSON body
HARDWARE_SUCCESS_CODE = 200
