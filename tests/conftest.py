"""Pytest bootstrap configuration.

Environment variables are set before any module that reads application
settings is imported. Every test gets its own temp-file SQLite database.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///./test-locker-unused.db")
os.environ.setdefault("ADMIN_IDENTITIES", "admin-openid")

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import select

from application.services.locker_coordinator import LockerTransactionCoordinator
from application.services.provisioning_service import ProvisioningService
from domain.billing.service import MeteredBillingPolicy, TariffRuleStore
from domain.billing.tariff import TariffRule
from domain.locker.entity import LockerRef
from domain.order.entity import ACTIVE_STATUSES, OrderStatus
from domain.services.door_actuator import DoorOpenResult
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.models import LockerModel, OrderModel
from infrastructure.unit_of_work import make_uow_factory

ADMIN_IDENTITY = "admin-openid"

TEST_TARIFF = TariffRule(
    free_minutes=15,
    first_period_minutes=60,
    first_period_price=300,
    unit_minutes=30,
    unit_price=100,
    cap_price=2000,
    deposit_price=1500,
)


class FakeDoorActuator:
    """Controllable actuator: fail, delay, raise, or run a hook while the door is opening."""

    name = "fake"

    def __init__(self) -> None:
        self.fail = False
        self.delay_seconds = 0.0
        self.error: Optional[Exception] = None
        self.hook: Optional[Callable[[LockerRef], Awaitable[None]]] = None
        self.calls: List[LockerRef] = []

    async def open(self, ref: LockerRef) -> DoorOpenResult:
        self.calls.append(ref)
        if self.hook is not None:
            hook, self.hook = self.hook, None
            await hook(ref)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        if self.fail:
            return DoorOpenResult(success=False, code=500, message="door jammed")
        return DoorOpenResult(success=True, code=200, message="ok")


class FixedClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'locker.db'}")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def uow_factory(session_factory):
    return make_uow_factory(session_factory)


@pytest.fixture
def actuator():
    return FakeDoorActuator()


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def tariff_store():
    return TariffRuleStore(TEST_TARIFF)


@pytest.fixture
def coordinator(uow_factory, actuator, clock, tariff_store):
    return LockerTransactionCoordinator(
        uow_factory,
        actuator,
        MeteredBillingPolicy(tariff_store.get),
        door_timeout=0.2,
        clock=clock,
    )


@pytest_asyncio.fixture
async def lockers(uow_factory):
    """One device L0001 with 2 cabinets x 2 doors, returned in creation order."""
    provisioning = ProvisioningService(uow_factory)
    await provisioning.bulk_create_devices(1)
    await provisioning.bulk_create_lockers("L0001", 2, 2)
    async with uow_factory(readonly=True) as uow:
        return await uow.locker_repository.list_all("L0001")


@pytest.fixture
def check_invariants(session_factory):
    """Cross-table consistency between lockers and orders."""

    async def _check() -> None:
        async with session_factory() as session:
            locker_rows = (await session.execute(select(LockerModel))).scalars().all()
            order_rows = (await session.execute(select(OrderModel))).scalars().all()
        orders = {o.id: o for o in order_rows}
        bound = {}
        for locker in locker_rows:
            occupied = locker.status == "occupied"
            assert occupied == (locker.current_order_id is not None), locker
            if occupied:
                order = orders[locker.current_order_id]
                assert OrderStatus(order.status) in ACTIVE_STATUSES, (locker, order)
                assert order.locker_id == locker.id
                bound[order.id] = locker.id
        for order in order_rows:
            # 取包开门后到结单前，进行中的订单允许不再占用柜门
            if order.status == OrderStatus.PENDING_PAY.value:
                assert bound.get(order.id) == order.locker_id, order
            if OrderStatus(order.status) not in ACTIVE_STATUSES:
                assert order.id not in bound, order

    return _check
