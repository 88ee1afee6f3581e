"""
用户账户仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import UserAccount


class UserAccountRepository(ABC):
    """用户账户仓储抽象接口"""

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def get_by_phone(self, phone: str) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def add_if_absent(self, account: UserAccount) -> UserAccount:
        """按手机号插入账户；同号账户已存在时返回已有账户"""
        pass

    @abstractmethod
    async def increment_deposit(self, user_id: int, amount: int) -> bool:
        """原子增加押金（deposit = deposit + amount），返回是否命中行"""
        pass

    @abstractmethod
    async def decrement_deposit(self, user_id: int, amount: int) -> bool:
        """原子扣减押金，余额不足时不更新并返回 False"""
        pass
