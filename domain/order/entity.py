"""
订单领域实体 - 寄存订单聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import OrderInvalidStateException


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING_PAY = "PENDING_PAY"          # 待支付
    IN_PROGRESS = "IN_PROGRESS"          # 进行中（已支付）
    COMPLETED = "COMPLETED"              # 已完成
    FORCE_FINISHED = "FORCE_FINISHED"    # 已强制结束
    REFUNDED = "REFUNDED"                # 已退款
    CANCELLED = "CANCELLED"              # 已取消（失败恢复）


ACTIVE_STATUSES = frozenset({OrderStatus.PENDING_PAY, OrderStatus.IN_PROGRESS})
REFUNDABLE_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.IN_PROGRESS})
RECOVERABLE_TARGETS = frozenset({OrderStatus.CANCELLED})


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Order:
    """
    订单聚合根 - 管理寄存生命周期

    状态机：
        PENDING_PAY -> IN_PROGRESS -> COMPLETED | FORCE_FINISHED
        COMPLETED | IN_PROGRESS -> REFUNDED
        PENDING_PAY | IN_PROGRESS -> CANCELLED（失败恢复）
        PENDING_PAY -> FORCE_FINISHED（管理员）
    """

    id: Optional[int]
    user_id: int
    phone: str
    retrieval_code: str
    locker_id: int
    device_id: str
    cabinet_no: int
    door_no: int
    status: OrderStatus
    start_time: datetime
    deposit: int = 0
    rent: int = 0
    pay_amount: int = 0
    refund_amount: int = 0
    end_time: Optional[datetime] = None
    pay_time: Optional[datetime] = None
    refund_time: Optional[datetime] = None
    stored_at: Optional[datetime] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.start_time = _ensure_utc(self.start_time)
        self.end_time = _ensure_utc(self.end_time)
        self.pay_time = _ensure_utc(self.pay_time)
        self.refund_time = _ensure_utc(self.refund_time)
        self.stored_at = _ensure_utc(self.stored_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def require_status(self, allowed: frozenset, action: str) -> None:
        if self.status not in allowed:
            raise OrderInvalidStateException(self.id, self.status.value, action)

    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def mark_paid(self, amount: int, now: datetime) -> None:
        self.require_status(frozenset({OrderStatus.PENDING_PAY}), "pay")
        self.status = OrderStatus.IN_PROGRESS
        self.pay_amount = amount
        self.pay_time = now
        self.updated_at = now

    def bind_slot(self, device_id: str, cabinet_no: int, door_no: int, now: datetime) -> None:
        """存包开门成功后与物理格口交叉关联"""
        self.device_id = device_id
        self.cabinet_no = cabinet_no
        self.door_no = door_no
        self.stored_at = now
        self.updated_at = now

    def complete(self, rent: int, now: datetime) -> None:
        self.require_status(frozenset({OrderStatus.IN_PROGRESS}), "finish")
        self.status = OrderStatus.COMPLETED
        self.rent = rent
        self.pay_amount = self.deposit + rent
        self.end_time = now
        self.updated_at = now

    def force_finish(self, now: datetime) -> None:
        self.require_status(ACTIVE_STATUSES, "force_finish")
        self.status = OrderStatus.FORCE_FINISHED
        self.end_time = now
        self.updated_at = now

    def refund(self, now: datetime) -> None:
        self.require_status(REFUNDABLE_STATUSES, "refund")
        self.status = OrderStatus.REFUNDED
        self.refund_amount = self.pay_amount
        self.refund_time = now
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        self.require_status(ACTIVE_STATUSES, "cancel")
        self.status = OrderStatus.CANCELLED
        self.end_time = now
        self.updated_at = now
