"""
设备仓储接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import Device


class DeviceRepository(ABC):
    """设备仓储抽象接口"""

    @abstractmethod
    async def get_by_device_id(self, device_id: str) -> Optional[Device]:
        pass

    @abstractmethod
    async def list_device_ids(self) -> List[str]:
        pass

    @abstractmethod
    async def bulk_create(self, devices: List[Device]) -> List[Device]:
        pass

    @abstractmethod
    async def update(self, device: Device) -> Device:
        pass

    @abstractmethod
    async def mark_offline_before(self, threshold: datetime) -> int:
        """把 updated_at 早于阈值的在线设备置为离线，返回影响行数"""
        pass
