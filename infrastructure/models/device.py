"""
设备数据库模型
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from .base import Base


class DeviceModel(Base):
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(32), unique=True, index=True, nullable=False, comment="设备编号 L0001")
    is_online = Column(Boolean, default=False, nullable=False, comment="是否在线")
    last_login_time = Column(DateTime(timezone=True), nullable=True, comment="最近登录时间")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<DeviceModel(device_id='{self.device_id}', online={self.is_online})>"
