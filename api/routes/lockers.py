"""
柜门API路由 - 空闲柜门查询、物理地址查询、开门
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_coordinator
from application.dto import LockerDTO, OpenDoorDTO, OpenDoorResultDTO
from application.services.locker_coordinator import LockerTransactionCoordinator
from core.response import Response as ApiResponse, success_response
from domain.locker.entity import LockerRef

router = APIRouter(
    prefix="/lockers",
    tags=["柜门"]
)


@router.get("/free", summary="空闲柜门列表", response_model=ApiResponse[List[LockerDTO]])
async def list_free_lockers(
    device_id: Optional[str] = Query(None, description="设备编号"),
    cabinet_no: Optional[int] = Query(None, ge=1, description="锁板号"),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    """按创建顺序返回空闲柜门，客户端取第一个即可"""
    lockers = await coordinator.list_free(device_id=device_id, cabinet_no=cabinet_no)
    return success_response(data=lockers)


@router.get("/lookup", summary="按物理地址查询柜门", response_model=ApiResponse[LockerDTO])
async def lookup_locker(
    device_id: str = Query(..., min_length=1),
    cabinet_no: int = Query(..., ge=1),
    door_no: int = Query(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    locker = await coordinator.find_locker(LockerRef(device_id, cabinet_no, door_no))
    return success_response(data=locker)


@router.post("/open-door", summary="开门（存包/取包）", response_model=ApiResponse[OpenDoorResultDTO])
async def open_door(
    payload: OpenDoorDTO,
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    """
    开门

    - **mode=store**: 订单需已支付（进行中），开门后记录存包时间
    - **mode=take**: 开门后释放柜门，随后调用结单接口
    """
    result = await coordinator.open_door(
        LockerRef(payload.device_id, payload.cabinet_no, payload.door_no),
        payload.order_id,
        payload.mode,
    )
    return success_response(data=result, message="Door opened")
