"""
用户账户数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, String

from .base import Base


class UserAccountModel(Base):
    """
    用户账户数据库模型

    所有业务规则都在 domain.user_account 中
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("deposit >= 0", name="ck_users_deposit_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), unique=True, index=True, nullable=False, comment="手机号")
    deposit = Column(BigInteger, default=0, nullable=False, comment="押金余额（分）")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    def __repr__(self):
        return f"<UserAccountModel(id={self.id}, phone='{self.phone}', deposit={self.deposit})>"
