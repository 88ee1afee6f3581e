"""Infrastructure models package exports."""
from .base import Base, metadata
from .device import DeviceModel
from .locker import LockerModel
from .order import OrderModel
from .user import UserAccountModel

__all__ = [
    "Base",
    "metadata",
    "DeviceModel",
    "LockerModel",
    "OrderModel",
    "UserAccountModel",
]
