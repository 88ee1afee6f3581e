"""
订单账本领域服务（Order Ledger）
"""
from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone
from typing import List, Optional

from .entity import Order, OrderStatus, RECOVERABLE_TARGETS
from .events import (
    OrderCancelled,
    OrderCreated,
    OrderFinished,
    OrderForceFinished,
    OrderPaid,
    OrderRefunded,
)
from .repository import OrderRepository
from domain.billing.service import BillingPolicy
from domain.common.exceptions import DomainValidationException, OrderNotFoundException
from domain.locker.entity import Locker

PHONE_PATTERN = re.compile(r"^\d{11}$")
CODE_PATTERN = re.compile(r"^\d{4,6}$")
RETRIEVAL_CODE_LENGTH = 6


def generate_retrieval_code() -> str:
    """6位数字取件码"""
    return "".join(secrets.choice("0123456789") for _ in range(RETRIEVAL_CODE_LENGTH))


def validate_phone(phone: str) -> str:
    if not isinstance(phone, str) or not PHONE_PATTERN.match(phone):
        raise DomainValidationException("phone must be 11 digits", field="phone")
    return phone


def validate_code(code: str) -> str:
    if not isinstance(code, str) or not CODE_PATTERN.match(code):
        raise DomainValidationException("code must be 4-6 digits", field="code")
    return code


class OrderLedger:
    """
    订单账本 - 订单状态机的唯一入口

    职责：
    1. 创建订单（押金/租金来自计费策略）
    2. 支付、结单、强制结束、退款、失败恢复的状态转换
    3. 按手机号+取件码查询进行中的订单
    4. 产生领域事件
    """

    def __init__(self, order_repository: OrderRepository, billing_policy: BillingPolicy):
        self.order_repository = order_repository
        self.billing_policy = billing_policy
        self.events: List = []  # 领域事件收集

    @staticmethod
    def _now(now: Optional[datetime]) -> datetime:
        return now or datetime.now(timezone.utc)

    async def create(
        self,
        locker: Locker,
        user_id: int,
        phone: str,
        code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        now = self._now(now)
        order = Order(
            id=None,
            user_id=user_id,
            phone=phone,
            retrieval_code=code or generate_retrieval_code(),
            locker_id=locker.id,
            device_id=locker.device_id,
            cabinet_no=locker.cabinet_no,
            door_no=locker.door_no,
            status=OrderStatus.PENDING_PAY,
            start_time=now,
            deposit=self.billing_policy.deposit(),
            rent=self.billing_policy.initial_rent(),
            created_at=now,
            updated_at=now,
        )
        order = await self.order_repository.create(order)
        self.events.append(OrderCreated(order_id=order.id, locker_id=order.locker_id, phone=phone))
        return order

    async def get(self, order_id: int) -> Order:
        order = await self.order_repository.get_by_id(order_id)
        if not order:
            raise OrderNotFoundException(order_id)
        return order

    async def load_fresh(self, order_id: int) -> Order:
        order = await self.order_repository.get_for_update(order_id)
        if not order:
            raise OrderNotFoundException(order_id)
        return order

    async def mark_paid(self, order: Order, now: Optional[datetime] = None) -> Order:
        amount = self.billing_policy.prepay()
        order.mark_paid(amount, self._now(now))
        order = await self.order_repository.update(order)
        self.events.append(OrderPaid(order_id=order.id, locker_id=order.locker_id, amount=amount))
        return order

    async def record_stored(self, order: Order, locker: Locker, now: Optional[datetime] = None) -> Order:
        order.bind_slot(locker.device_id, locker.cabinet_no, locker.door_no, self._now(now))
        return await self.order_repository.update(order)

    async def finish(self, order: Order, now: Optional[datetime] = None) -> Order:
        now = self._now(now)
        # 先校验状态，避免对终态订单计费
        order.require_status(frozenset({OrderStatus.IN_PROGRESS}), "finish")
        fee = self.billing_policy.quote(order.start_time, now)
        order.complete(fee.rent, now)
        order = await self.order_repository.update(order)
        self.events.append(OrderFinished(
            order_id=order.id,
            locker_id=order.locker_id,
            rent=order.rent,
            pay_amount=order.pay_amount,
        ))
        return order

    async def force_finish(self, order: Order, now: Optional[datetime] = None) -> Order:
        order.force_finish(self._now(now))
        order = await self.order_repository.update(order)
        self.events.append(OrderForceFinished(order_id=order.id, locker_id=order.locker_id))
        return order

    async def refund(self, order: Order, now: Optional[datetime] = None) -> Order:
        order.refund(self._now(now))
        order = await self.order_repository.update(order)
        self.events.append(OrderRefunded(
            order_id=order.id, locker_id=order.locker_id, amount=order.refund_amount
        ))
        return order

    async def recover(
        self,
        order: Order,
        target_status: OrderStatus | str = OrderStatus.CANCELLED,
        now: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> Order:
        try:
            target = OrderStatus(target_status)
        except ValueError:
            target = None
        if target not in RECOVERABLE_TARGETS:
            raise DomainValidationException(
                "recover target status must be CANCELLED",
                field="target_status",
                details={"target_status": str(target_status)},
            )
        order.cancel(self._now(now))
        order = await self.order_repository.update(order)
        self.events.append(OrderCancelled(order_id=order.id, locker_id=order.locker_id, reason=reason))
        return order

    async def query_by_phone_and_code(
        self,
        phone: str,
        code: str,
        device_id: Optional[str] = None,
    ) -> Optional[Order]:
        return await self.order_repository.find_latest_by_phone_and_code(
            phone, code, [OrderStatus.IN_PROGRESS], device_id=device_id
        )
