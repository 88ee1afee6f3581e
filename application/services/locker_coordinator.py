"""
寄存事务协调器（application/services）- 编排柜门、订单、用户账户与开门硬件

每个写用例在一个 Unit of Work（一个数据库事务）内完成，柜门状态总是事务内新鲜读取。
开门失败（硬件失败或未预期异常）时事务回滚，再以独立事务执行幂等补偿。
"""
from __future__ import annotations

import asyncio
import functools
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional

from application.dto import LockerDTO, OpenDoorResultDTO, OrderDTO
from core.logging_config import get_logger
from domain.billing.service import BillingPolicy
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    DoorOpenTimeoutException,
    HardwareFailureException,
    InternalErrorException,
    LockerNotFreeException,
    LockerOrderMismatchException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.locker.entity import Locker, LockerRef
from domain.locker.service import LockerRegistry
from domain.order.entity import Order, OrderStatus
from domain.order.service import OrderLedger, validate_code, validate_phone
from domain.services.door_actuator import DoorActuator
from domain.user_account.service import UserAccountStore

logger = get_logger(__name__)

DEFAULT_DOOR_TIMEOUT_SECONDS = 5.0


class DoorMode(str, Enum):
    STORE = "store"
    TAKE = "take"


class DoorOpenPhase(str, Enum):
    """开门状态机：Requested -> Validated -> HardwareOpening -> Opened | Failed"""
    REQUESTED = "requested"
    VALIDATED = "validated"
    HARDWARE_OPENING = "hardware_opening"
    OPENED = "opened"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_business_error(func):
    """未预期异常统一包装为 Internal，调用方总能拿到结构化结果"""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except BusinessException:
            raise
        except Exception as exc:
            logger.exception("coordinator_unexpected_error", operation=func.__name__)
            raise InternalErrorException(f"Unexpected error in {func.__name__}") from exc

    return wrapper


class LockerTransactionCoordinator:
    """寄存事务协调器 - 小程序与管理端全部写操作的唯一入口"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        door_actuator: DoorActuator,
        billing_policy: BillingPolicy,
        *,
        door_timeout: float = DEFAULT_DOOR_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._door_actuator = door_actuator
        self._billing_policy = billing_policy
        self._door_timeout = door_timeout
        self._clock = clock

    # ---- 查询 ----

    async def list_free(
        self,
        device_id: Optional[str] = None,
        cabinet_no: Optional[int] = None,
    ) -> List[LockerDTO]:
        async with self._uow_factory(readonly=True) as uow:
            lockers = await LockerRegistry(uow.locker_repository).list_free(device_id, cabinet_no)
            return [self._to_locker_dto(locker) for locker in lockers]

    async def find_locker(self, ref: LockerRef) -> LockerDTO:
        async with self._uow_factory(readonly=True) as uow:
            locker = await LockerRegistry(uow.locker_repository).find_by_physical_address(ref)
            return self._to_locker_dto(locker)

    async def get_order(self, order_id: int) -> OrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await self._ledger(uow).get(order_id)
            return self._to_order_dto(order)

    async def query_by_phone_and_code(
        self,
        phone: str,
        code: str,
        device_id: Optional[str] = None,
    ) -> Optional[OrderDTO]:
        validate_phone(phone)
        validate_code(code)
        async with self._uow_factory(readonly=True) as uow:
            order = await self._ledger(uow).query_by_phone_and_code(phone, code, device_id)
            return self._to_order_dto(order) if order else None

    # ---- 下单与支付 ----

    @_as_business_error
    async def create_order(self, locker_id: int, phone: str, code: Optional[str] = None) -> OrderDTO:
        """占用柜门并创建待支付订单；竞争失败返回 Conflict"""
        validate_phone(phone)
        if code is not None:
            validate_code(code)

        now = self._clock()
        async with self._uow_factory() as uow:
            registry = LockerRegistry(uow.locker_repository)
            ledger = self._ledger(uow)

            locker = await registry.load_fresh(locker_id)
            if not locker.is_free():
                raise LockerNotFreeException(locker.id, locker.current_order_id)

            account = await UserAccountStore(uow.user_account_repository).get_or_create_by_phone(phone)
            order = await ledger.create(locker, account.id, phone, code, now=now)
            await registry.mark_occupied(locker, order.id)

        self._log_events(ledger.events)
        logger.info("order_created", order_id=order.id, locker_id=locker_id, user_id=order.user_id)
        return self._to_order_dto(order)

    @_as_business_error
    async def mock_pay_success(self, order_id: int) -> OrderDTO:
        """模拟支付成功：订单进入进行中并入账押金"""
        async with self._uow_factory() as uow:
            ledger = self._ledger(uow)
            order = await ledger.load_fresh(order_id)
            order = await ledger.mark_paid(order, now=self._clock())
            await UserAccountStore(uow.user_account_repository).credit_deposit(order.user_id, order.deposit)

        self._log_events(ledger.events)
        return self._to_order_dto(order)

    # ---- 开门 ----

    async def open_door(self, ref: LockerRef, order_id: int, mode: DoorMode | str) -> OpenDoorResultDTO:
        """
        开门（存包/取包）

        - store：柜门必须被该订单占用，订单必须进行中且绑定此柜门
        - take：柜门必须被该订单占用；开门成功后释放柜门，结单为独立调用
        """
        try:
            mode = DoorMode(mode)
        except ValueError:
            raise DomainValidationException("mode must be store or take", field="mode") from None
        log = logger.bind(locker=str(ref), order_id=order_id, mode=mode.value)
        log.info("door_open_requested", phase=DoorOpenPhase.REQUESTED.value)
        try:
            return await self._open_door(ref, order_id, mode, log)
        except (HardwareFailureException, InternalErrorException) as exc:
            log.warning("door_open_failed", phase=DoorOpenPhase.FAILED.value,
                        error_type=exc.error_type, error=exc.message)
            await self._compensate(ref, order_id, reason=exc.error_type)
            raise
        except BusinessException as exc:
            log.info("door_open_rejected", error_type=exc.error_type, error=exc.message)
            raise
        except Exception as exc:
            log.exception("door_open_unexpected_error", phase=DoorOpenPhase.FAILED.value)
            await self._compensate(ref, order_id, reason="Internal")
            raise InternalErrorException("Unexpected error while opening door") from exc

    async def _open_door(self, ref: LockerRef, order_id: int, mode: DoorMode, log) -> OpenDoorResultDTO:
        async with self._uow_factory() as uow:
            registry = LockerRegistry(uow.locker_repository)
            ledger = self._ledger(uow)

            locker = await registry.load_fresh_by_ref(ref)
            if not locker.is_bound_to(order_id):
                raise LockerOrderMismatchException(locker.id, order_id, locker.current_order_id)
            order = await ledger.load_fresh(order_id)
            if mode is DoorMode.STORE:
                order.require_status(frozenset({OrderStatus.IN_PROGRESS}), "store")
            if order.locker_id != locker.id:
                raise LockerOrderMismatchException(locker.id, order_id, locker.current_order_id)
            log.info("door_open_validated", phase=DoorOpenPhase.VALIDATED.value)

            hardware_code = await self._actuate(ref, log)

            now = self._clock()
            if mode is DoorMode.STORE:
                locker = await registry.record_open(locker, now)
                order = await ledger.record_stored(order, locker, now)
            else:
                locker = await registry.release_after_open(locker, now)

        log.info("door_opened", phase=DoorOpenPhase.OPENED.value, hardware_code=hardware_code)
        return OpenDoorResultDTO(
            locker=self._to_locker_dto(locker),
            order=self._to_order_dto(order),
            mode=mode.value,
            hardware_code=hardware_code,
            opened_at=now,
        )

    async def _actuate(self, ref: LockerRef, log) -> int:
        log.info("door_hardware_opening", phase=DoorOpenPhase.HARDWARE_OPENING.value,
                 actuator=getattr(self._door_actuator, "name", "unknown"))
        try:
            result = await asyncio.wait_for(self._door_actuator.open(ref), timeout=self._door_timeout)
        except asyncio.TimeoutError as exc:
            raise DoorOpenTimeoutException(str(ref), self._door_timeout) from exc
        if not result.success:
            raise HardwareFailureException(
                f"Door {ref} failed to open: {result.message or result.code}",
                details={"locker": str(ref), "hardware_code": result.code},
            )
        return result.code

    async def _compensate(self, ref: LockerRef, order_id: int, reason: str) -> None:
        """幂等补偿：释放仍归属该订单（或已空闲）的柜门，并取消未结束的订单"""
        try:
            async with self._uow_factory() as uow:
                registry = LockerRegistry(uow.locker_repository)
                ledger = self._ledger(uow)

                locker = await uow.locker_repository.get_by_ref_for_update(ref)
                order = await uow.order_repository.get_for_update(order_id)

                if locker is not None and (locker.is_bound_to(order_id) or locker.current_order_id is None):
                    await registry.mark_free(locker)
                if (
                    order is not None
                    and order.is_active()
                    and (locker is None or order.locker_id == locker.id)
                ):
                    await ledger.recover(order, OrderStatus.CANCELLED, now=self._clock(),
                                         reason=f"door_open_{reason}")
            self._log_events(ledger.events)
            logger.info("locker_compensation_applied", locker=str(ref), order_id=order_id, reason=reason)
        except Exception:
            logger.exception("locker_compensation_failed", locker=str(ref), order_id=order_id, reason=reason)

    # ---- 结单与管理操作 ----

    @_as_business_error
    async def finish_order(self, order_id: int) -> OrderDTO:
        """结单计费；柜门若仍归属该订单则同事务释放"""
        async with self._uow_factory() as uow:
            ledger = self._ledger(uow)
            order = await ledger.load_fresh(order_id)
            order = await ledger.finish(order, now=self._clock())
            await self._release_if_bound(uow, order)

        self._log_events(ledger.events)
        return self._to_order_dto(order)

    @_as_business_error
    async def force_finish(self, order_id: int) -> OrderDTO:
        """管理员强制结束，总是释放绑定的柜门"""
        async with self._uow_factory() as uow:
            ledger = self._ledger(uow)
            order = await ledger.load_fresh(order_id)
            order = await ledger.force_finish(order, now=self._clock())
            await self._release_if_bound(uow, order)

        self._log_events(ledger.events)
        return self._to_order_dto(order)

    @_as_business_error
    async def refund(self, order_id: int) -> OrderDTO:
        """管理员退款：订单退款并扣回押金，同一事务"""
        async with self._uow_factory() as uow:
            ledger = self._ledger(uow)
            order = await ledger.load_fresh(order_id)
            order = await ledger.refund(order, now=self._clock())
            await UserAccountStore(uow.user_account_repository).debit_deposit(order.user_id, order.deposit)
            await self._release_if_bound(uow, order)

        self._log_events(ledger.events)
        return self._to_order_dto(order)

    @_as_business_error
    async def recover_order(self, order_id: int, target_status: OrderStatus | str = OrderStatus.CANCELLED) -> OrderDTO:
        async with self._uow_factory() as uow:
            ledger = self._ledger(uow)
            order = await ledger.load_fresh(order_id)
            order = await ledger.recover(order, target_status, now=self._clock(), reason="admin_recover")
            await self._release_if_bound(uow, order)

        self._log_events(ledger.events)
        return self._to_order_dto(order)

    @_as_business_error
    async def release_locker(self, ref: LockerRef) -> LockerDTO:
        """管理员释放柜门；绑定的未结束订单同时取消"""
        async with self._uow_factory() as uow:
            registry = LockerRegistry(uow.locker_repository)
            ledger = self._ledger(uow)

            locker = await registry.load_fresh_by_ref(ref)
            if locker.current_order_id is not None:
                order = await uow.order_repository.get_for_update(locker.current_order_id)
                if order is not None and order.is_active():
                    await ledger.recover(order, OrderStatus.CANCELLED, now=self._clock(),
                                         reason="locker_released")
            locker = await registry.mark_free(locker)

        self._log_events(ledger.events)
        logger.info("locker_released", locker=str(ref), locker_id=locker.id)
        return self._to_locker_dto(locker)

    # ---- 内部工具 ----

    def _ledger(self, uow: AbstractUnitOfWork) -> OrderLedger:
        return OrderLedger(uow.order_repository, self._billing_policy)

    async def _release_if_bound(self, uow: AbstractUnitOfWork, order: Order) -> None:
        registry = LockerRegistry(uow.locker_repository)
        locker = await registry.load_fresh(order.locker_id)
        if locker.is_bound_to(order.id):
            await registry.mark_free(locker)
            logger.info("locker_freed", locker_id=locker.id, order_id=order.id)

    @staticmethod
    def _log_events(events: Iterable) -> None:
        for event in events:
            logger.info(
                "order_event",
                event_name=event.name,
                order_id=event.order_id,
                locker_id=event.locker_id,
                event_id=event.event_id,
            )

    @staticmethod
    def _to_locker_dto(locker: Locker) -> LockerDTO:
        return LockerDTO(
            id=locker.id,
            device_id=locker.device_id,
            cabinet_no=locker.cabinet_no,
            door_no=locker.door_no,
            status=locker.status.value,
            current_order_id=locker.current_order_id,
            last_open_at=locker.last_open_at,
        )

    @staticmethod
    def _to_order_dto(order: Order) -> OrderDTO:
        return OrderDTO(
            id=order.id,
            user_id=order.user_id,
            phone=order.phone,
            retrieval_code=order.retrieval_code,
            locker_id=order.locker_id,
            device_id=order.device_id,
            cabinet_no=order.cabinet_no,
            door_no=order.door_no,
            status=order.status.value,
            deposit=order.deposit,
            rent=order.rent,
            pay_amount=order.pay_amount,
            refund_amount=order.refund_amount,
            start_time=order.start_time,
            end_time=order.end_time,
            pay_time=order.pay_time,
            refund_time=order.refund_time,
            stored_at=order.stored_at,
        )
