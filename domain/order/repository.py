"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Order, OrderStatus


class OrderRepository(ABC):
    """订单仓储抽象接口"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单"""
        pass

    @abstractmethod
    async def get_for_update(self, order_id: int) -> Optional[Order]:
        """事务内新鲜读取并加锁"""
        pass

    @abstractmethod
    async def find_latest_by_phone_and_code(
        self,
        phone: str,
        code: str,
        statuses: List[OrderStatus],
        device_id: Optional[str] = None,
    ) -> Optional[Order]:
        """按手机号+取件码查询最近一笔订单"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """按版本号条件更新；版本不匹配时抛出冲突异常"""
        pass
