"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。

异常分类：
- DomainValidationException  输入不合法，事务开始前拒绝，无副作用
- NotFoundException          柜门/订单/用户/设备不存在
- InvalidStateException      状态前置条件不满足
- ConflictException          并发写入竞争失败
- HardwareFailureException   开门硬件调用失败或超时
- InternalErrorException     未预期的持久化/系统异常
"""
from __future__ import annotations

from typing import Optional

from shared.codes import BusinessCode
from shared.codes.locker_codes import LockerCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class NotFoundException(BusinessException):
    def __init__(self, message: str, *, reason: LockerCode, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=message,
            error_type="NotFound",
            details={"reason_code": int(reason), **(details or {})},
        )


class InvalidStateException(BusinessException):
    def __init__(self, message: str, *, reason: LockerCode, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.INVALID_STATE,
            message=message,
            error_type="InvalidState",
            details={"reason_code": int(reason), **(details or {})},
        )


class ConflictException(BusinessException):
    def __init__(self, message: str, *, reason: LockerCode, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=message,
            error_type="Conflict",
            details={"reason_code": int(reason), **(details or {})},
        )


class HardwareFailureException(BusinessException):
    def __init__(self, message: str, *, reason: LockerCode = LockerCode.DOOR_OPEN_FAILED,
                 details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.HARDWARE_ERROR,
            message=message,
            error_type="HardwareFailure",
            details={"reason_code": int(reason), **(details or {})},
        )


class InternalErrorException(BusinessException):
    def __init__(self, message: str = "Internal error", *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.SYSTEM_ERROR,
            message=message,
            error_type="Internal",
            details=details,
        )


class ForbiddenException(BusinessException):
    def __init__(self, message: str = "Admin permission required"):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
        )


# ---- 具体业务异常 ----

class LockerNotFoundException(NotFoundException):
    def __init__(self, locker_ref: str):
        super().__init__(
            f"Locker {locker_ref} not found",
            reason=LockerCode.LOCKER_NOT_FOUND,
            details={"locker": locker_ref},
        )


class LockerNotFreeException(ConflictException):
    """柜门已被占用（下单竞争失败或重复下单）"""

    def __init__(self, locker_id: int, current_order_id: Optional[int] = None):
        super().__init__(
            f"Locker {locker_id} is not free",
            reason=LockerCode.LOCKER_NOT_FREE,
            details={"locker_id": locker_id, "current_order_id": current_order_id},
        )


class LockerOrderMismatchException(InvalidStateException):
    def __init__(self, locker_id: int, expected_order_id: int, current_order_id: Optional[int]):
        super().__init__(
            f"Locker {locker_id} is bound to order {current_order_id}, not {expected_order_id}",
            reason=LockerCode.LOCKER_ORDER_MISMATCH,
            details={
                "locker_id": locker_id,
                "order_id": expected_order_id,
                "current_order_id": current_order_id,
            },
        )


class LockerConcurrentUpdateException(ConflictException):
    def __init__(self, locker_id: int):
        super().__init__(
            f"Locker {locker_id} was modified by a concurrent request",
            reason=LockerCode.LOCKER_CONFLICT,
            details={"locker_id": locker_id},
        )


class OrderNotFoundException(NotFoundException):
    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} not found",
            reason=LockerCode.ORDER_NOT_FOUND,
            details={"order_id": order_id},
        )


class OrderInvalidStateException(InvalidStateException):
    def __init__(self, order_id: Optional[int], status: str, action: str):
        super().__init__(
            f"Order {order_id} cannot {action} in status {status}",
            reason=LockerCode.ORDER_INVALID_STATE,
            details={"order_id": order_id, "status": status, "action": action},
        )


class OrderConcurrentUpdateException(ConflictException):
    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} was modified by a concurrent request",
            reason=LockerCode.ORDER_CONFLICT,
            details={"order_id": order_id},
        )


class UserAccountNotFoundException(NotFoundException):
    def __init__(self, user_id: int):
        super().__init__(
            f"User account {user_id} not found",
            reason=LockerCode.ACCOUNT_NOT_FOUND,
            details={"user_id": user_id},
        )


class InsufficientDepositException(InvalidStateException):
    def __init__(self, user_id: int, amount: int):
        super().__init__(
            f"User {user_id} deposit is insufficient for debit of {amount}",
            reason=LockerCode.INSUFFICIENT_DEPOSIT,
            details={"user_id": user_id, "amount": amount},
        )


class DeviceNotFoundException(NotFoundException):
    def __init__(self, device_id: str):
        super().__init__(
            f"Device {device_id} not found",
            reason=LockerCode.DEVICE_NOT_FOUND,
            details={"device_id": device_id},
        )


class DeviceAlreadyExistsException(ConflictException):
    def __init__(self, device_id: str):
        super().__init__(
            f"Device {device_id} already exists",
            reason=LockerCode.DEVICE_ALREADY_EXISTS,
            details={"device_id": device_id},
        )


class LockerAlreadyExistsException(ConflictException):
    def __init__(self, device_id: str):
        super().__init__(
            f"Lockers for device {device_id} overlap existing slots",
            reason=LockerCode.LOCKER_ALREADY_EXISTS,
            details={"device_id": device_id},
        )


class DoorOpenTimeoutException(HardwareFailureException):
    def __init__(self, locker_ref: str, timeout: float):
        super().__init__(
            f"Door {locker_ref} did not open within {timeout}s",
            reason=LockerCode.DOOR_OPEN_TIMEOUT,
            details={"locker": locker_ref, "timeout": timeout},
        )
