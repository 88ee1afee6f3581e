"""
柜门领域实体 - 物理柜门及其占用状态
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import LockerNotFreeException


class LockerStatus(str, Enum):
    FREE = "free"
    OCCUPIED = "occupied"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class LockerRef:
    """柜门物理地址：设备 + 锁板号 + 锁号"""

    device_id: str
    cabinet_no: int
    door_no: int

    def __str__(self) -> str:
        return f"{self.device_id}/{self.cabinet_no}/{self.door_no}"


@dataclass
class Locker:
    """
    柜门实体

    业务规则：
    1. status=occupied 当且仅当 current_order_id 不为空
    2. 只有空闲柜门可以绑定订单
    3. 释放是幂等的
    """

    id: Optional[int]
    device_id: str
    cabinet_no: int
    door_no: int
    status: LockerStatus = LockerStatus.FREE
    current_order_id: Optional[int] = None
    last_open_at: Optional[datetime] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.last_open_at = _ensure_utc(self.last_open_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @property
    def ref(self) -> LockerRef:
        return LockerRef(self.device_id, self.cabinet_no, self.door_no)

    def is_free(self) -> bool:
        return self.status == LockerStatus.FREE and self.current_order_id is None

    def is_bound_to(self, order_id: int) -> bool:
        return self.status == LockerStatus.OCCUPIED and self.current_order_id == order_id

    def occupy(self, order_id: int, now: Optional[datetime] = None) -> None:
        if not self.is_free():
            raise LockerNotFreeException(self.id, self.current_order_id)
        self.status = LockerStatus.OCCUPIED
        self.current_order_id = order_id
        self.updated_at = now or datetime.now(timezone.utc)

    def release(self, now: Optional[datetime] = None) -> None:
        self.status = LockerStatus.FREE
        self.current_order_id = None
        self.updated_at = now or datetime.now(timezone.utc)

    def record_open(self, now: Optional[datetime] = None) -> None:
        self.last_open_at = now or datetime.now(timezone.utc)
        self.updated_at = self.last_open_at
