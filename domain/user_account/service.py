"""
用户账户领域服务（User Account Store）
"""
from datetime import datetime, timezone

from .entity import UserAccount
from .repository import UserAccountRepository
from domain.common.exceptions import (
    DomainValidationException,
    InsufficientDepositException,
    UserAccountNotFoundException,
)


def _validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise DomainValidationException(
            "amount must be a non-negative integer", field="amount", details={"amount": amount}
        )


class UserAccountStore:
    """
    用户账户服务

    押金增减全部走仓储的原子更新，避免读改写造成的余额漂移。
    """

    def __init__(self, user_account_repository: UserAccountRepository):
        self.user_account_repository = user_account_repository

    async def get(self, user_id: int) -> UserAccount:
        account = await self.user_account_repository.get_by_id(user_id)
        if not account:
            raise UserAccountNotFoundException(user_id)
        return account

    async def get_or_create_by_phone(self, phone: str) -> UserAccount:
        account = await self.user_account_repository.get_by_phone(phone)
        if account:
            return account
        now = datetime.now(timezone.utc)
        return await self.user_account_repository.add_if_absent(
            UserAccount(id=None, phone=phone, deposit=0, created_at=now, updated_at=now)
        )

    async def credit_deposit(self, user_id: int, amount: int) -> None:
        _validate_amount(amount)
        if not await self.user_account_repository.increment_deposit(user_id, amount):
            raise UserAccountNotFoundException(user_id)

    async def debit_deposit(self, user_id: int, amount: int) -> None:
        _validate_amount(amount)
        if await self.user_account_repository.decrement_deposit(user_id, amount):
            return
        # 区分账户不存在与余额不足
        await self.get(user_id)
        raise InsufficientDepositException(user_id, amount)
