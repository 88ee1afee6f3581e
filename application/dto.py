"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer

from domain.billing.tariff import TariffRule


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


# ---- 柜门 ----

class LockerRefDTO(DTOBase):
    """柜门物理地址"""
    device_id: str = Field(..., min_length=1, description="设备编号，如 L0001")
    cabinet_no: int = Field(..., ge=1, description="锁板号")
    door_no: int = Field(..., ge=1, description="锁号")


class LockerDTO(DTOBase):
    """柜门响应DTO"""
    id: int
    device_id: str
    cabinet_no: int
    door_no: int
    status: str
    current_order_id: Optional[int] = None
    last_open_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LockerFilterDTO(DTOBase):
    device_id: Optional[str] = None
    cabinet_no: Optional[int] = Field(None, ge=1)


class OpenDoorDTO(LockerRefDTO):
    """开门请求"""
    order_id: int = Field(..., ge=1)
    mode: Literal["store", "take"]


class OpenDoorResultDTO(DTOBase):
    """开门结果"""
    locker: LockerDTO
    order: "OrderDTO"
    mode: Literal["store", "take"]
    hardware_code: int
    opened_at: datetime


class ReleaseLockerDTO(LockerRefDTO):
    """管理员释放柜门"""


class BulkLockersDTO(DTOBase):
    device_id: str = Field(..., min_length=1)
    cabinet_count: int = Field(..., ge=1, le=99)
    doors_per_cabinet: int = Field(..., ge=1, le=99)


class BulkLockersResultDTO(DTOBase):
    device_id: str
    created: int


# ---- 订单 ----

class CreateOrderDTO(DTOBase):
    """下单请求；手机号与取件码格式由协调器统一校验"""
    locker_id: int = Field(..., ge=1)
    phone: str
    code: Optional[str] = None


class OrderDTO(DTOBase):
    """订单响应DTO"""
    id: int
    user_id: int
    phone: str
    retrieval_code: str
    locker_id: int
    device_id: str
    cabinet_no: int
    door_no: int
    status: str
    deposit: int
    rent: int
    pay_amount: int
    refund_amount: int
    start_time: datetime
    end_time: Optional[datetime] = None
    pay_time: Optional[datetime] = None
    refund_time: Optional[datetime] = None
    stored_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QueryOrderDTO(DTOBase):
    phone: str
    code: str
    device_id: Optional[str] = None


class RecoverOrderDTO(DTOBase):
    target_status: str = Field("CANCELLED", description="恢复目标状态，仅支持 CANCELLED")


# ---- 用户账户 ----

class UserAccountDTO(DTOBase):
    id: int
    phone: str
    deposit: int

    model_config = ConfigDict(from_attributes=True)


# ---- 设备 ----

class BulkDevicesDTO(DTOBase):
    count: int = Field(..., ge=1, le=500, description="新增设备数量")


class DeviceDTO(DTOBase):
    id: int
    device_id: str
    is_online: bool
    last_login_time: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BulkDevicesResultDTO(DTOBase):
    created: List[str]


class OpenByPhoneDTO(DTOBase):
    phone: str
    code: str


class OpenByPhoneResultDTO(DTOBase):
    order_id: int
    door_sort: str = Field(..., description="两位锁板号 + 两位锁号，如 0203")
    status: str = Field(..., description="取件后的订单状态")


# ---- 计费规则 ----

class TariffRuleDTO(DTOBase):
    free_minutes: int = Field(0, ge=0)
    first_period_minutes: int = Field(0, ge=0)
    first_period_price: int = Field(0, ge=0)
    unit_minutes: int = Field(30, ge=1)
    unit_price: int = Field(0, ge=0)
    cap_price: int = Field(0, ge=0)
    deposit_price: int = Field(0, ge=0)

    def to_rule(self) -> TariffRule:
        return TariffRule(**self.model_dump())

    @classmethod
    def from_rule(cls, rule: TariffRule) -> "TariffRuleDTO":
        return cls(**rule.to_dict())


class AdminCheckDTO(DTOBase):
    identity: Optional[str] = None
    is_admin: bool


OpenDoorResultDTO.model_rebuild()
