"""
柜机API路由 - 登录、心跳、柜机屏幕凭手机号取件
"""
from fastapi import APIRouter, Depends, Path

from api.dependencies import get_device_service
from application.dto import DeviceDTO, OpenByPhoneDTO, OpenByPhoneResultDTO
from application.services.device_service import DeviceService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/devices",
    tags=["柜机"]
)


@router.post("/{device_id}/login", summary="柜机登录", response_model=ApiResponse[DeviceDTO])
async def device_login(
    device_id: str = Path(..., min_length=1),
    service: DeviceService = Depends(get_device_service),
):
    return success_response(data=await service.login(device_id))


@router.post("/{device_id}/heartbeat", summary="柜机心跳", response_model=ApiResponse[DeviceDTO])
async def device_heartbeat(
    device_id: str = Path(..., min_length=1),
    service: DeviceService = Depends(get_device_service),
):
    return success_response(data=await service.heartbeat(device_id))


@router.post("/{device_id}/open-by-phone", summary="手机号+取件码开门取件",
             response_model=ApiResponse[OpenByPhoneResultDTO])
async def open_by_phone(
    payload: OpenByPhoneDTO,
    device_id: str = Path(..., min_length=1),
    service: DeviceService = Depends(get_device_service),
):
    """成功后返回 door_sort（两位锁板号 + 两位锁号），柜机据此亮灯提示"""
    result = await service.open_by_phone(device_id, payload.phone, payload.code)
    return success_response(data=result, message="Door opened")
