"""
计费规则值对象（金额单位：分）
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum

from domain.common.exceptions import DomainValidationException


DEFAULT_UNIT_MINUTES = 30


class BillingMode(str, Enum):
    """计费模式：按时计费 / 固定费用"""
    METERED = "metered"
    FLAT = "flat"


@dataclass(frozen=True)
class Fee:
    rent: int
    deposit: int

    @property
    def total(self) -> int:
        return self.rent + self.deposit


@dataclass(frozen=True)
class TariffRule:
    """
    计费规则

    业务规则：
    1. 所有分钟数与金额均为非负整数
    2. 续费单位分钟数必须大于0
    3. cap_price 为 0 表示不封顶
    """

    free_minutes: int = 0
    first_period_minutes: int = 0
    first_period_price: int = 0
    unit_minutes: int = DEFAULT_UNIT_MINUTES
    unit_price: int = 0
    cap_price: int = 0
    deposit_price: int = 0

    def __post_init__(self):
        for name, value in asdict(self).items():
            if not isinstance(value, int) or isinstance(value, bool):
                raise DomainValidationException(f"{name} must be an integer", field=name)
            if value < 0:
                raise DomainValidationException(f"{name} must not be negative: {value}", field=name)
        if self.unit_minutes <= 0:
            raise DomainValidationException(
                f"unit_minutes must be positive: {self.unit_minutes}",
                field="unit_minutes",
            )

    def to_dict(self) -> dict:
        return asdict(self)
