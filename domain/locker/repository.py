"""
柜门仓储接口 - 定义柜门数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Locker, LockerRef


class LockerRepository(ABC):
    """柜门仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def bulk_create(self, lockers: List[Locker]) -> int:
        """批量创建柜门，返回创建数量"""
        pass

    @abstractmethod
    async def get_by_id(self, locker_id: int) -> Optional[Locker]:
        """根据ID获取柜门"""
        pass

    @abstractmethod
    async def get_by_ref(self, ref: LockerRef) -> Optional[Locker]:
        """根据物理地址获取柜门"""
        pass

    @abstractmethod
    async def get_for_update(self, locker_id: int) -> Optional[Locker]:
        """事务内新鲜读取并加锁（绕过会话缓存）"""
        pass

    @abstractmethod
    async def get_by_ref_for_update(self, ref: LockerRef) -> Optional[Locker]:
        """按物理地址新鲜读取并加锁"""
        pass

    @abstractmethod
    async def list_free(
        self,
        device_id: Optional[str] = None,
        cabinet_no: Optional[int] = None,
    ) -> List[Locker]:
        """空闲柜门列表（按创建顺序）"""
        pass

    @abstractmethod
    async def list_all(self, device_id: Optional[str] = None) -> List[Locker]:
        """全部柜门"""
        pass

    @abstractmethod
    async def update(self, locker: Locker) -> Locker:
        """按版本号条件更新；版本不匹配时抛出冲突异常"""
        pass

    @abstractmethod
    async def exists_for_device(self, device_id: str) -> bool:
        """设备下是否已有柜门"""
        pass
