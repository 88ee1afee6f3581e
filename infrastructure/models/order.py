"""
订单数据库模型
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String

from .base import Base


class OrderModel(Base):
    """寄存订单表（只追加状态，不删除）"""

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_phone_code", "phone", "retrieval_code"),
        Index("ix_orders_status_created", "status", "created_at"),
        {"comment": "寄存订单表"},
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, comment="用户ID")
    phone = Column(String(20), nullable=False, comment="手机号")
    retrieval_code = Column(String(8), nullable=False, comment="取件码")
    locker_id = Column(Integer, ForeignKey("lockers.id", ondelete="RESTRICT"), nullable=False, comment="柜门ID")
    device_id = Column(String(32), nullable=False, comment="设备编号")
    cabinet_no = Column(Integer, nullable=False, comment="锁板号")
    door_no = Column(Integer, nullable=False, comment="锁号")
    status = Column(String(20), nullable=False, index=True, comment="订单状态")

    deposit = Column(BigInteger, nullable=False, default=0, comment="押金（分）")
    rent = Column(BigInteger, nullable=False, default=0, comment="租金（分）")
    pay_amount = Column(BigInteger, nullable=False, default=0, comment="实付金额（分）")
    refund_amount = Column(BigInteger, nullable=False, default=0, comment="退款金额（分）")

    start_time = Column(DateTime(timezone=True), nullable=False, comment="开始时间")
    end_time = Column(DateTime(timezone=True), nullable=True, comment="结束时间")
    pay_time = Column(DateTime(timezone=True), nullable=True, comment="支付时间")
    refund_time = Column(DateTime(timezone=True), nullable=True, comment="退款时间")
    stored_at = Column(DateTime(timezone=True), nullable=True, comment="存包开门时间")
    version = Column(Integer, nullable=False, default=0, comment="乐观锁版本号")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间",
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, status='{self.status}', locker_id={self.locker_id})>"
