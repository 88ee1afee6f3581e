"""
用户账户仓储实现 - 押金增减使用单条原子 SQL
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.user_account.entity import UserAccount
from domain.user_account.repository import UserAccountRepository
from infrastructure.models.user import UserAccountModel

logger = get_logger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SQLAlchemyUserAccountRepository(UserAccountRepository):
    """用户账户仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: UserAccountModel) -> UserAccount:
        return UserAccount(
            id=model.id,
            phone=model.phone,
            deposit=model.deposit,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_by_id(self, user_id: int) -> Optional[UserAccount]:
        result = await self.session.execute(
            select(UserAccountModel)
            .where(UserAccountModel.id == user_id)
            .execution_options(populate_existing=True)
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_by_phone(self, phone: str) -> Optional[UserAccount]:
        result = await self.session.execute(
            select(UserAccountModel)
            .where(UserAccountModel.phone == phone)
            .execution_options(populate_existing=True)
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def add_if_absent(self, account: UserAccount) -> UserAccount:
        """
        按手机号插入账户，已存在则保留原行

        使用 INSERT ... ON CONFLICT (phone) DO NOTHING，并发首单不会因唯一约束失败；
        插入后统一按手机号回读，返回库中实际存在的那一行。
        """
        dialect = self.session.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise NotImplementedError(f"add_if_absent is not supported on dialect {dialect!r}")

        stmt = (
            insert(UserAccountModel)
            .values(
                phone=account.phone,
                deposit=account.deposit,
                created_at=account.created_at,
                updated_at=account.updated_at,
            )
            .on_conflict_do_nothing(index_elements=[UserAccountModel.phone])
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            logger.info("user_account_already_exists", phone=account.phone)
        else:
            logger.info("user_account_created", phone=account.phone)

        stored = await self.get_by_phone(account.phone)
        if stored is None:
            raise RuntimeError(f"user account for {account.phone} vanished after insert")
        return stored

    async def increment_deposit(self, user_id: int, amount: int) -> bool:
        result = await self.session.execute(
            update(UserAccountModel)
            .where(UserAccountModel.id == user_id)
            .values(
                deposit=UserAccountModel.deposit + amount,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def decrement_deposit(self, user_id: int, amount: int) -> bool:
        result = await self.session.execute(
            update(UserAccountModel)
            .where(UserAccountModel.id == user_id, UserAccountModel.deposit >= amount)
            .values(
                deposit=UserAccountModel.deposit - amount,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
