"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import OrderConcurrentUpdateException
from domain.order.entity import Order, OrderStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel
from infrastructure.repositories.locking import is_lock_conflict

logger = get_logger(__name__)

_MUTABLE_FIELDS = (
    "device_id",
    "cabinet_no",
    "door_no",
    "status",
    "deposit",
    "rent",
    "pay_amount",
    "refund_amount",
    "end_time",
    "pay_time",
    "refund_time",
    "stored_at",
    "updated_at",
)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            user_id=model.user_id,
            phone=model.phone,
            retrieval_code=model.retrieval_code,
            locker_id=model.locker_id,
            device_id=model.device_id,
            cabinet_no=model.cabinet_no,
            door_no=model.door_no,
            status=OrderStatus(model.status),
            start_time=model.start_time,
            deposit=model.deposit,
            rent=model.rent,
            pay_amount=model.pay_amount,
            refund_amount=model.refund_amount,
            end_time=model.end_time,
            pay_time=model.pay_time,
            refund_time=model.refund_time,
            stored_at=model.stored_at,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        return OrderModel(
            id=entity.id,
            user_id=entity.user_id,
            phone=entity.phone,
            retrieval_code=entity.retrieval_code,
            locker_id=entity.locker_id,
            device_id=entity.device_id,
            cabinet_no=entity.cabinet_no,
            door_no=entity.door_no,
            status=entity.status.value,
            start_time=entity.start_time,
            deposit=entity.deposit,
            rent=entity.rent,
            pay_amount=entity.pay_amount,
            refund_amount=entity.refund_amount,
            end_time=entity.end_time,
            pay_time=entity.pay_time,
            refund_time=entity.refund_time,
            stored_at=entity.stored_at,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, order: Order) -> Order:
        """创建订单"""
        db_order = self._to_model(order)
        self.session.add(db_order)
        await self.session.flush()  # 获取生成的ID
        await self.session.refresh(db_order)
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_for_update(self, order_id: int) -> Optional[Order]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update(nowait=True)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
        except DBAPIError as e:
            if is_lock_conflict(e):
                logger.warning("order_lock_not_available", order_id=order_id)
                raise OrderConcurrentUpdateException(order_id) from e
            raise
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def find_latest_by_phone_and_code(
        self,
        phone: str,
        code: str,
        statuses: List[OrderStatus],
        device_id: Optional[str] = None,
    ) -> Optional[Order]:
        query = select(OrderModel).where(
            OrderModel.phone == phone,
            OrderModel.retrieval_code == code,
            OrderModel.status.in_([s.value for s in statuses]),
        )
        if device_id is not None:
            query = query.where(OrderModel.device_id == device_id)
        # 最近创建的优先，ID 倒序保证稳定
        query = query.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).limit(1)
        result = await self.session.execute(query)
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def update(self, order: Order) -> Order:
        """按版本号条件更新（CAS）"""
        values = {name: getattr(order, name) for name in _MUTABLE_FIELDS}
        values["status"] = order.status.value
        values["version"] = order.version + 1
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.version == order.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except DBAPIError as e:
            if is_lock_conflict(e):
                raise OrderConcurrentUpdateException(order.id) from e
            raise
        if result.rowcount != 1:
            logger.warning("order_version_conflict", order_id=order.id, version=order.version)
            raise OrderConcurrentUpdateException(order.id)
        order.version += 1
        return order
