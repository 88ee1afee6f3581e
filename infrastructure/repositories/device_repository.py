"""
设备仓储实现
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import DeviceAlreadyExistsException, DeviceNotFoundException
from domain.device.entity import Device
from domain.device.repository import DeviceRepository
from infrastructure.models.device import DeviceModel

logger = get_logger(__name__)


class SQLAlchemyDeviceRepository(DeviceRepository):
    """设备仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: DeviceModel) -> Device:
        return Device(
            id=model.id,
            device_id=model.device_id,
            is_online=model.is_online,
            last_login_time=model.last_login_time,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_by_device_id(self, device_id: str) -> Optional[Device]:
        result = await self.session.execute(
            select(DeviceModel)
            .where(DeviceModel.device_id == device_id)
            .execution_options(populate_existing=True)
        )
        db_device = result.scalar_one_or_none()
        return self._to_entity(db_device) if db_device else None

    async def list_device_ids(self) -> List[str]:
        result = await self.session.execute(select(DeviceModel.device_id))
        return list(result.scalars().all())

    async def bulk_create(self, devices: List[Device]) -> List[Device]:
        models = [
            DeviceModel(
                device_id=d.device_id,
                is_online=d.is_online,
                last_login_time=d.last_login_time,
                created_at=d.created_at,
                updated_at=d.updated_at,
            )
            for d in devices
        ]
        self.session.add_all(models)
        try:
            await self.session.flush()
        except IntegrityError as e:
            first = devices[0].device_id if devices else ""
            logger.warning("bulk_create_devices_conflict", first=first)
            raise DeviceAlreadyExistsException(first) from e
        return [self._to_entity(m) for m in models]

    async def update(self, device: Device) -> Device:
        result = await self.session.execute(
            update(DeviceModel)
            .where(DeviceModel.device_id == device.device_id)
            .values(
                is_online=device.is_online,
                last_login_time=device.last_login_time,
                updated_at=device.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise DeviceNotFoundException(device.device_id)
        return device

    async def mark_offline_before(self, threshold: datetime) -> int:
        result = await self.session.execute(
            update(DeviceModel)
            .where(DeviceModel.is_online.is_(True), DeviceModel.updated_at < threshold)
            .values(is_online=False, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
