"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.device.repository import DeviceRepository
from domain.locker.repository import LockerRepository
from domain.order.repository import OrderRepository
from domain.user_account.repository import UserAccountRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象：一个用例一个事务"""

    locker_repository: LockerRepository
    order_repository: OrderRepository
    user_account_repository: UserAccountRepository
    device_repository: DeviceRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.locker_repository = None  # type: ignore[assignment]
        self.order_repository = None  # type: ignore[assignment]
        self.user_account_repository = None  # type: ignore[assignment]
        self.device_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # 只在非只读且未显式提交时自动提交
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """提交事务"""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """回滚事务"""
        ...
