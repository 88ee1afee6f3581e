"""
设备桥接服务 - 柜机登录、心跳、凭手机号取件开门、离线巡检
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from application.dto import DeviceDTO, OpenByPhoneResultDTO
from application.services.locker_coordinator import DoorMode, LockerTransactionCoordinator
from core.logging_config import get_logger
from domain.common.exceptions import (
    DeviceNotFoundException,
    InternalErrorException,
    NotFoundException,
    OrderInvalidStateException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.device.entity import Device
from domain.locker.entity import LockerRef
from domain.order.service import validate_code, validate_phone
from shared.codes.locker_codes import LockerCode

logger = get_logger(__name__)

DEFAULT_OFFLINE_THRESHOLD_SECONDS = 300


def format_door_sort(cabinet_no: int, door_no: int) -> str:
    """两位锁板号 + 两位锁号，柜机据此定位格口"""
    return f"{cabinet_no:02d}{door_no:02d}"


class DeviceService:
    """柜机侧接口"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        coordinator: Optional[LockerTransactionCoordinator] = None,
    ):
        self._uow_factory = uow_factory
        self._coordinator = coordinator

    async def login(self, device_id: str) -> DeviceDTO:
        async with self._uow_factory() as uow:
            device = await self._get_device(uow, device_id)
            device.login(datetime.now(timezone.utc))
            device = await uow.device_repository.update(device)
        logger.info("device_login", device_id=device_id)
        return self._to_dto(device)

    async def heartbeat(self, device_id: str) -> DeviceDTO:
        async with self._uow_factory() as uow:
            device = await self._get_device(uow, device_id)
            device.heartbeat(datetime.now(timezone.utc))
            device = await uow.device_repository.update(device)
        return self._to_dto(device)

    async def open_by_phone(self, device_id: str, phone: str, code: str) -> OpenByPhoneResultDTO:
        """柜机屏幕输入手机号+取件码取件"""
        if self._coordinator is None:
            raise InternalErrorException("Door bridge is not configured")
        validate_phone(phone)
        validate_code(code)
        async with self._uow_factory(readonly=True) as uow:
            await self._get_device(uow, device_id)

        order = await self._coordinator.query_by_phone_and_code(phone, code, device_id=device_id)
        if order is None:
            logger.info("open_by_phone_no_order", device_id=device_id)
            raise NotFoundException(
                "No in-progress order matches this phone and code",
                reason=LockerCode.ORDER_NOT_FOUND,
                details={"device_id": device_id},
            )

        ref = LockerRef(order.device_id, order.cabinet_no, order.door_no)
        await self._coordinator.open_door(ref, order.id, DoorMode.TAKE)
        # 柜机取件开门成功后直接结单
        try:
            finished = await self._coordinator.finish_order(order.id)
            status = finished.status
        except OrderInvalidStateException:
            logger.info("open_by_phone_order_already_closed", device_id=device_id, order_id=order.id)
            status = (await self._coordinator.get_order(order.id)).status
        return OpenByPhoneResultDTO(
            order_id=order.id,
            door_sort=format_door_sort(order.cabinet_no, order.door_no),
            status=status,
        )

    async def sweep_offline(self, threshold_seconds: int = DEFAULT_OFFLINE_THRESHOLD_SECONDS) -> int:
        """心跳超时的在线设备置为离线"""
        threshold = datetime.now(timezone.utc) - timedelta(seconds=threshold_seconds)
        async with self._uow_factory() as uow:
            count = await uow.device_repository.mark_offline_before(threshold)
        if count:
            logger.info("devices_marked_offline", count=count, threshold_seconds=threshold_seconds)
        return count

    @staticmethod
    async def _get_device(uow: AbstractUnitOfWork, device_id: str) -> Device:
        device = await uow.device_repository.get_by_device_id(device_id)
        if device is None:
            raise DeviceNotFoundException(device_id)
        return device

    @staticmethod
    def _to_dto(device: Device) -> DeviceDTO:
        return DeviceDTO(
            id=device.id,
            device_id=device.device_id,
            is_online=device.is_online,
            last_login_time=device.last_login_time,
            updated_at=device.updated_at,
        )
