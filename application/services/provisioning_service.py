"""
开通服务 - 批量新增设备与柜门
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from application.dto import BulkDevicesResultDTO, BulkLockersResultDTO
from core.logging_config import get_logger
from domain.common.exceptions import DeviceNotFoundException, DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.device.entity import Device, format_device_id, parse_device_seq
from domain.locker.service import LockerRegistry

logger = get_logger(__name__)


class ProvisioningService:
    """设备与柜门开通（管理员）"""

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def bulk_create_devices(self, count: int) -> BulkDevicesResultDTO:
        """按 L0001 递增编号新增设备，编号接续当前最大值"""
        if count <= 0:
            raise DomainValidationException("count must be positive", field="count")

        now = datetime.now(timezone.utc)
        async with self._uow_factory() as uow:
            existing = await uow.device_repository.list_device_ids()
            seqs = [s for s in (parse_device_seq(d) for d in existing) if s is not None]
            start = max(seqs, default=0) + 1
            devices = [
                Device(id=None, device_id=format_device_id(seq), is_online=False,
                       created_at=now, updated_at=now)
                for seq in range(start, start + count)
            ]
            created = await uow.device_repository.bulk_create(devices)

        ids = [d.device_id for d in created]
        logger.info("devices_created", count=len(ids), first=ids[0], last=ids[-1])
        return BulkDevicesResultDTO(created=ids)

    async def bulk_create_lockers(
        self,
        device_id: str,
        cabinet_count: int,
        doors_per_cabinet: int,
    ) -> BulkLockersResultDTO:
        """为已存在的设备生成 锁板 x 锁号 全量空闲柜门"""
        async with self._uow_factory() as uow:
            if await uow.device_repository.get_by_device_id(device_id) is None:
                raise DeviceNotFoundException(device_id)
            created = await LockerRegistry(uow.locker_repository).bulk_create(
                device_id, cabinet_count, doors_per_cabinet
            )

        logger.info(
            "lockers_created",
            device_id=device_id,
            cabinet_count=cabinet_count,
            doors_per_cabinet=doors_per_cabinet,
            created=created,
        )
        return BulkLockersResultDTO(device_id=device_id, created=created)
