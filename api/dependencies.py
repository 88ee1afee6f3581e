"""
API依赖项 - 服务装配（组合根）与管理员鉴权
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.utils.headers import CLIENT_IDENTITY_HEADER, clean_identity
from application.services.device_service import DeviceService
from application.services.locker_coordinator import LockerTransactionCoordinator
from application.services.provisioning_service import ProvisioningService
from application.services.tariff_service import TariffService
from core.config import Settings, settings
from core.logging_config import get_logger
from domain.billing.service import BillingPolicy, TariffRuleStore, build_billing_policy
from domain.billing.tariff import TariffRule
from domain.common.exceptions import ForbiddenException
from domain.services.authorization import AdminPolicy
from domain.services.door_actuator import DoorActuator
from infrastructure.adapters.authorization import StaticAllowListAdminPolicy
from infrastructure.database import AsyncSessionLocal
from infrastructure.external.door import build_door_actuator
from infrastructure.unit_of_work import make_uow_factory

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """进程内单例服务集合，挂在 app.state.container 上"""
    tariff_store: TariffRuleStore
    billing_policy: BillingPolicy
    door_actuator: DoorActuator
    admin_policy: AdminPolicy
    coordinator: LockerTransactionCoordinator
    provisioning: ProvisioningService
    devices: DeviceService
    tariff: TariffService


def build_container(
    cfg: Settings = settings,
    *,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    door_actuator: Optional[DoorActuator] = None,
    admin_policy: Optional[AdminPolicy] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ServiceContainer:
    """按配置装配全部服务；测试可替换会话工厂、开门驱动与时钟"""
    uow_factory = make_uow_factory(session_factory)
    tariff_store = TariffRuleStore(TariffRule(**cfg.billing.tariff.model_dump()))
    billing_policy = build_billing_policy(
        cfg.billing.mode,
        tariff_store=tariff_store,
        flat_rent=cfg.billing.flat_rent,
        flat_deposit=cfg.billing.flat_deposit,
    )
    actuator = door_actuator or build_door_actuator(cfg.door)
    coordinator_kwargs = {"door_timeout": cfg.door.timeout_seconds}
    if clock is not None:
        coordinator_kwargs["clock"] = clock
    coordinator = LockerTransactionCoordinator(
        uow_factory, actuator, billing_policy, **coordinator_kwargs
    )
    logger.info(
        "services_configured",
        billing_mode=billing_policy.mode.value,
        door_driver=getattr(actuator, "name", "custom"),
        admin_count=len(cfg.ADMIN_IDENTITIES),
    )
    return ServiceContainer(
        tariff_store=tariff_store,
        billing_policy=billing_policy,
        door_actuator=actuator,
        admin_policy=admin_policy or StaticAllowListAdminPolicy(cfg.ADMIN_IDENTITIES),
        coordinator=coordinator,
        provisioning=ProvisioningService(uow_factory),
        devices=DeviceService(uow_factory, coordinator),
        tariff=TariffService(tariff_store),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_coordinator(container: ServiceContainer = Depends(get_container)) -> LockerTransactionCoordinator:
    return container.coordinator


async def get_provisioning_service(container: ServiceContainer = Depends(get_container)) -> ProvisioningService:
    return container.provisioning


async def get_device_service(container: ServiceContainer = Depends(get_container)) -> DeviceService:
    return container.devices


async def get_tariff_service(container: ServiceContainer = Depends(get_container)) -> TariffService:
    return container.tariff


async def get_client_identity(
    identity: Optional[str] = Header(None, alias=CLIENT_IDENTITY_HEADER),
) -> Optional[str]:
    """调用方身份（小程序 openid），来自请求头"""
    return clean_identity(identity)


async def require_admin(
    identity: Optional[str] = Depends(get_client_identity),
    container: ServiceContainer = Depends(get_container),
) -> str:
    """管理员白名单校验，非管理员返回 403"""
    if not container.admin_policy.is_admin(identity):
        logger.info("admin_access_denied", identity=identity)
        raise ForbiddenException()
    return identity
