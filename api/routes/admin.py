"""
管理端API路由 - 开通、强制结束、退款、恢复、释放柜门、计费规则
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path

from api.dependencies import (
    get_client_identity,
    get_container,
    get_coordinator,
    get_provisioning_service,
    get_tariff_service,
    require_admin,
)
from application.dto import (
    AdminCheckDTO,
    BulkDevicesDTO,
    BulkDevicesResultDTO,
    BulkLockersDTO,
    BulkLockersResultDTO,
    LockerDTO,
    OrderDTO,
    RecoverOrderDTO,
    ReleaseLockerDTO,
    TariffRuleDTO,
)
from application.services.locker_coordinator import LockerTransactionCoordinator
from application.services.provisioning_service import ProvisioningService
from application.services.tariff_service import TariffService
from core.response import Response as ApiResponse, success_response
from domain.locker.entity import LockerRef

router = APIRouter(
    prefix="/admin",
    tags=["管理端"],
)


@router.get("/me", summary="当前调用方是否管理员", response_model=ApiResponse[AdminCheckDTO])
async def am_i_admin(
    identity: Optional[str] = Depends(get_client_identity),
    container=Depends(get_container),
):
    return success_response(
        data=AdminCheckDTO(identity=identity, is_admin=container.admin_policy.is_admin(identity))
    )


@router.post("/devices/bulk", summary="批量新增设备", response_model=ApiResponse[BulkDevicesResultDTO],
             dependencies=[Depends(require_admin)])
async def bulk_create_devices(
    payload: BulkDevicesDTO,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    return success_response(data=await service.bulk_create_devices(payload.count), message="Devices created")


@router.post("/lockers/bulk", summary="批量开通柜门", response_model=ApiResponse[BulkLockersResultDTO],
             dependencies=[Depends(require_admin)])
async def bulk_create_lockers(
    payload: BulkLockersDTO,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """为设备生成 锁板号 1..N x 锁号 1..M 的空闲柜门"""
    result = await service.bulk_create_lockers(payload.device_id, payload.cabinet_count, payload.doors_per_cabinet)
    return success_response(data=result, message="Lockers created")


@router.post("/lockers/release", summary="强制释放柜门", response_model=ApiResponse[LockerDTO],
             dependencies=[Depends(require_admin)])
async def release_locker(
    payload: ReleaseLockerDTO,
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    locker = await coordinator.release_locker(LockerRef(payload.device_id, payload.cabinet_no, payload.door_no))
    return success_response(data=locker, message="Locker released")


@router.post("/orders/{order_id}/force-finish", summary="强制结束订单", response_model=ApiResponse[OrderDTO],
             dependencies=[Depends(require_admin)])
async def force_finish(
    order_id: int = Path(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    return success_response(data=await coordinator.force_finish(order_id), message="Order force finished")


@router.post("/orders/{order_id}/refund", summary="订单退款", response_model=ApiResponse[OrderDTO],
             dependencies=[Depends(require_admin)])
async def refund(
    order_id: int = Path(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    return success_response(data=await coordinator.refund(order_id), message="Order refunded")


@router.post("/orders/{order_id}/recover", summary="失败订单恢复", response_model=ApiResponse[OrderDTO],
             dependencies=[Depends(require_admin)])
async def recover(
    payload: RecoverOrderDTO,
    order_id: int = Path(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    order = await coordinator.recover_order(order_id, payload.target_status)
    return success_response(data=order, message="Order recovered")


@router.get("/tariff", summary="查询计费规则", response_model=ApiResponse[TariffRuleDTO],
            dependencies=[Depends(require_admin)])
async def get_tariff(service: TariffService = Depends(get_tariff_service)):
    return success_response(data=service.get_rule())


@router.put("/tariff", summary="修改计费规则", response_model=ApiResponse[TariffRuleDTO],
            dependencies=[Depends(require_admin)])
async def update_tariff(
    payload: TariffRuleDTO,
    service: TariffService = Depends(get_tariff_service),
):
    """规则不做版本化，修改后对之后结单的订单立即生效"""
    return success_response(data=service.update_rule(payload), message="Tariff updated")
