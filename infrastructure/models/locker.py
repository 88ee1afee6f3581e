"""
柜门数据库模型
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from .base import Base


class LockerModel(Base):
    """柜门表：(device_id, cabinet_no, door_no) 唯一"""

    __tablename__ = "lockers"
    __table_args__ = (
        UniqueConstraint("device_id", "cabinet_no", "door_no", name="uq_lockers_slot"),
        Index("ix_lockers_status_device", "status", "device_id"),
        {"comment": "柜门表，记录格口占用状态"},
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    device_id = Column(
        String(32),
        ForeignKey("devices.device_id", ondelete="RESTRICT"),
        nullable=False,
        comment="设备编号",
    )
    cabinet_no = Column(Integer, nullable=False, comment="锁板号")
    door_no = Column(Integer, nullable=False, comment="锁号")
    status = Column(String(16), nullable=False, default="free", comment="free / occupied")
    current_order_id = Column(Integer, nullable=True, comment="当前占用订单ID")
    last_open_at = Column(DateTime(timezone=True), nullable=True, comment="最近开门时间")
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
        return (
            f"<LockerModel(id={self.id}, slot={self.device_id}/{self.cabinet_no}/{self.door_no}, "
            f"status='{self.status}', order={self.current_order_id})>"
        )
