"""
柜门登记领域服务（Locker Registry）
"""
from datetime import datetime, timezone
from typing import List, Optional

from .entity import Locker, LockerRef, LockerStatus
from .repository import LockerRepository
from domain.common.exceptions import (
    DomainValidationException,
    LockerAlreadyExistsException,
    LockerNotFoundException,
)


class LockerRegistry:
    """
    柜门登记服务

    职责：
    1. 查询空闲柜门（首个可用，不做负载均衡）
    2. 占用/释放柜门（仅由事务协调器调用）
    3. 物理地址 -> 柜门 的映射（硬件回调关联）
    4. 批量开通柜门
    """

    def __init__(self, locker_repository: LockerRepository):
        self.locker_repository = locker_repository

    async def list_free(
        self,
        device_id: Optional[str] = None,
        cabinet_no: Optional[int] = None,
    ) -> List[Locker]:
        return await self.locker_repository.list_free(device_id=device_id, cabinet_no=cabinet_no)

    async def find_by_physical_address(self, ref: LockerRef) -> Locker:
        locker = await self.locker_repository.get_by_ref(ref)
        if not locker:
            raise LockerNotFoundException(str(ref))
        return locker

    async def load_fresh(self, locker_id: int) -> Locker:
        locker = await self.locker_repository.get_for_update(locker_id)
        if not locker:
            raise LockerNotFoundException(str(locker_id))
        return locker

    async def load_fresh_by_ref(self, ref: LockerRef) -> Locker:
        locker = await self.locker_repository.get_by_ref_for_update(ref)
        if not locker:
            raise LockerNotFoundException(str(ref))
        return locker

    async def mark_occupied(self, locker: Locker, order_id: int) -> Locker:
        # 实体校验空闲状态，仓储按版本号防止并发覆盖
        locker.occupy(order_id)
        return await self.locker_repository.update(locker)

    async def mark_free(self, locker: Locker) -> Locker:
        if locker.is_free():
            return locker
        locker.release()
        return await self.locker_repository.update(locker)

    async def record_open(self, locker: Locker, now: Optional[datetime] = None) -> Locker:
        locker.record_open(now)
        return await self.locker_repository.update(locker)

    async def release_after_open(self, locker: Locker, now: Optional[datetime] = None) -> Locker:
        locker.record_open(now)
        locker.release(now)
        return await self.locker_repository.update(locker)

    async def bulk_create(self, device_id: str, cabinet_count: int, doors_per_cabinet: int) -> int:
        """按 锁板号 1..N x 锁号 1..M 生成空闲柜门"""
        if cabinet_count <= 0 or doors_per_cabinet <= 0:
            raise DomainValidationException(
                "cabinet_count and doors_per_cabinet must be positive",
                details={"cabinet_count": cabinet_count, "doors_per_cabinet": doors_per_cabinet},
            )
        if await self.locker_repository.exists_for_device(device_id):
            raise LockerAlreadyExistsException(device_id)

        now = datetime.now(timezone.utc)
        lockers = [
            Locker(
                id=None,
                device_id=device_id,
                cabinet_no=cabinet_no,
                door_no=door_no,
                status=LockerStatus.FREE,
                current_order_id=None,
                created_at=now,
                updated_at=now,
            )
            for cabinet_no in range(1, cabinet_count + 1)
            for door_no in range(1, doors_per_cabinet + 1)
        ]
        return await self.locker_repository.bulk_create(lockers)
