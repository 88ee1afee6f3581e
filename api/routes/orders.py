"""
订单API路由 - 下单、模拟支付、结单、凭手机号+取件码查询
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path

from api.dependencies import get_coordinator
from application.dto import CreateOrderDTO, OrderDTO, QueryOrderDTO
from application.services.locker_coordinator import LockerTransactionCoordinator
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/orders",
    tags=["订单"]
)


@router.post("", summary="下单占用柜门", response_model=ApiResponse[OrderDTO])
async def create_order(
    payload: CreateOrderDTO,
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    """
    创建待支付订单

    - **locker_id**: 柜门ID（需空闲）
    - **phone**: 11位手机号
    - **code**: 4-6位取件码（可选，不传则生成6位）
    """
    order = await coordinator.create_order(payload.locker_id, payload.phone, payload.code)
    return success_response(data=order, message="Order created")


@router.get("/{order_id}", summary="订单详情", response_model=ApiResponse[OrderDTO])
async def get_order(
    order_id: int = Path(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    return success_response(data=await coordinator.get_order(order_id))


@router.post("/{order_id}/mock-pay", summary="模拟支付成功", response_model=ApiResponse[OrderDTO])
async def mock_pay(
    order_id: int = Path(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    order = await coordinator.mock_pay_success(order_id)
    return success_response(data=order, message="Payment recorded")


@router.post("/{order_id}/finish", summary="结单计费", response_model=ApiResponse[OrderDTO])
async def finish_order(
    order_id: int = Path(..., ge=1),
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    order = await coordinator.finish_order(order_id)
    return success_response(data=order, message="Order finished")


@router.post("/query", summary="手机号+取件码查询进行中订单", response_model=ApiResponse[Optional[OrderDTO]])
async def query_order(
    payload: QueryOrderDTO,
    coordinator: LockerTransactionCoordinator = Depends(get_coordinator),
):
    order = await coordinator.query_by_phone_and_code(payload.phone, payload.code, payload.device_id)
    return success_response(data=order, message="Success" if order else "No matching order")
