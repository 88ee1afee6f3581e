"""
柜门仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import LockerAlreadyExistsException, LockerConcurrentUpdateException
from domain.locker.entity import Locker, LockerRef, LockerStatus
from domain.locker.repository import LockerRepository
from infrastructure.models.locker import LockerModel
from infrastructure.repositories.locking import is_lock_conflict

logger = get_logger(__name__)


class SQLAlchemyLockerRepository(LockerRepository):
    """柜门仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: LockerModel) -> Locker:
        """将数据库模型转换为领域实体"""
        return Locker(
            id=model.id,
            device_id=model.device_id,
            cabinet_no=model.cabinet_no,
            door_no=model.door_no,
            status=LockerStatus(model.status),
            current_order_id=model.current_order_id,
            last_open_at=model.last_open_at,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Locker) -> LockerModel:
        """将领域实体转换为数据库模型"""
        return LockerModel(
            id=entity.id,
            device_id=entity.device_id,
            cabinet_no=entity.cabinet_no,
            door_no=entity.door_no,
            status=entity.status.value,
            current_order_id=entity.current_order_id,
            last_open_at=entity.last_open_at,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    @staticmethod
    def _by_ref(ref: LockerRef):
        return select(LockerModel).where(
            LockerModel.device_id == ref.device_id,
            LockerModel.cabinet_no == ref.cabinet_no,
            LockerModel.door_no == ref.door_no,
        )

    async def _fetch_fresh(self, stmt, locker_ref: str) -> Optional[Locker]:
        # 绕过会话身份映射缓存，并在支持的方言上 FOR UPDATE NOWAIT
        stmt = stmt.with_for_update(nowait=True).execution_options(populate_existing=True)
        try:
            result = await self.session.execute(stmt)
        except DBAPIError as e:
            if is_lock_conflict(e):
                logger.warning("locker_lock_not_available", locker=locker_ref)
                raise LockerConcurrentUpdateException(locker_ref) from e
            raise
        db_locker = result.scalar_one_or_none()
        return self._to_entity(db_locker) if db_locker else None

    async def bulk_create(self, lockers: List[Locker]) -> int:
        """批量创建柜门"""
        models = [self._to_model(locker) for locker in lockers]
        self.session.add_all(models)
        try:
            await self.session.flush()
        except IntegrityError as e:
            device_id = lockers[0].device_id if lockers else ""
            logger.warning("bulk_create_lockers_conflict", device_id=device_id, error=str(e.orig))
            raise LockerAlreadyExistsException(device_id) from e
        return len(models)

    async def get_by_id(self, locker_id: int) -> Optional[Locker]:
        result = await self.session.execute(
            select(LockerModel).where(LockerModel.id == locker_id)
        )
        db_locker = result.scalar_one_or_none()
        return self._to_entity(db_locker) if db_locker else None

    async def get_by_ref(self, ref: LockerRef) -> Optional[Locker]:
        result = await self.session.execute(self._by_ref(ref))
        db_locker = result.scalar_one_or_none()
        return self._to_entity(db_locker) if db_locker else None

    async def get_for_update(self, locker_id: int) -> Optional[Locker]:
        return await self._fetch_fresh(
            select(LockerModel).where(LockerModel.id == locker_id), str(locker_id)
        )

    async def get_by_ref_for_update(self, ref: LockerRef) -> Optional[Locker]:
        return await self._fetch_fresh(self._by_ref(ref), str(ref))

    async def list_free(
        self,
        device_id: Optional[str] = None,
        cabinet_no: Optional[int] = None,
    ) -> List[Locker]:
        query = select(LockerModel).where(
            LockerModel.status == LockerStatus.FREE.value,
            LockerModel.current_order_id.is_(None),
        )
        if device_id is not None:
            query = query.where(LockerModel.device_id == device_id)
        if cabinet_no is not None:
            query = query.where(LockerModel.cabinet_no == cabinet_no)
        result = await self.session.execute(query.order_by(LockerModel.id.asc()))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_all(self, device_id: Optional[str] = None) -> List[Locker]:
        query = select(LockerModel)
        if device_id is not None:
            query = query.where(LockerModel.device_id == device_id)
        result = await self.session.execute(query.order_by(LockerModel.id.asc()))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, locker: Locker) -> Locker:
        """按版本号条件更新（CAS）"""
        stmt = (
            update(LockerModel)
            .where(LockerModel.id == locker.id, LockerModel.version == locker.version)
            .values(
                status=locker.status.value,
                current_order_id=locker.current_order_id,
                last_open_at=locker.last_open_at,
                updated_at=locker.updated_at,
                version=locker.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except DBAPIError as e:
            if is_lock_conflict(e):
                raise LockerConcurrentUpdateException(locker.id) from e
            raise
        if result.rowcount != 1:
            logger.warning("locker_version_conflict", locker_id=locker.id, version=locker.version)
            raise LockerConcurrentUpdateException(locker.id)
        locker.version += 1
        return locker

    async def exists_for_device(self, device_id: str) -> bool:
        result = await self.session.execute(
            select(LockerModel.id).where(LockerModel.device_id == device_id).limit(1)
        )
        return result.scalar_one_or_none() is not None
