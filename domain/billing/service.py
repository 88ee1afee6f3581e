"""
计费领域服务 - 纯函数计费算法与计费策略

两种计费模式并存：
- metered: 按计费规则（免费时长/首段/续费单位/封顶）在结单时计算租金
- flat:    固定租金 + 固定押金，与时长无关
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Protocol, runtime_checkable

from .tariff import Fee, TariffRule, BillingMode

_MINUTE_US = 60_000_000


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def elapsed_minutes(start_time: datetime, end_time: datetime) -> int:
    """计费分钟数：不足一分钟按一分钟计，负时长按0计"""
    micros = (end_time - start_time) // timedelta(microseconds=1)
    if micros <= 0:
        return 0
    return _ceil_div(micros, _MINUTE_US)


def compute_fee(start_time: datetime, end_time: datetime, rule: TariffRule) -> Fee:
    """
    计费算法：返回应收租金与押金

    - 时长 <= 免费分钟数：租金为0
    - 扣除免费时长后 <= 首段分钟数：收首段价格
    - 否则：首段价格 + ceil(剩余分钟 / 续费单位) * 单价
    - 设置了封顶价时取较小值
    """
    minutes = elapsed_minutes(start_time, end_time)
    if minutes <= rule.free_minutes:
        return Fee(rent=0, deposit=rule.deposit_price)

    billable = minutes - rule.free_minutes
    if billable <= rule.first_period_minutes:
        rent = rule.first_period_price
    else:
        units = _ceil_div(billable - rule.first_period_minutes, rule.unit_minutes)
        rent = rule.first_period_price + units * rule.unit_price

    if rule.cap_price:
        rent = min(rent, rule.cap_price)
    return Fee(rent=rent, deposit=rule.deposit_price)


@runtime_checkable
class BillingPolicy(Protocol):
    """计费策略协议，订单账本只依赖该协议"""

    mode: BillingMode

    def deposit(self) -> int: ...

    def initial_rent(self) -> int: ...

    def prepay(self) -> int: ...

    def quote(self, start_time: datetime, end_time: datetime) -> Fee: ...


class TariffRuleStore:
    """进程级计费规则持有者（不做版本化，修改立即对后续结单生效）"""

    def __init__(self, rule: TariffRule) -> None:
        self._rule = rule

    def get(self) -> TariffRule:
        return self._rule

    def update(self, rule: TariffRule) -> TariffRule:
        self._rule = rule
        return rule


class MeteredBillingPolicy:
    mode = BillingMode.METERED

    def __init__(self, rule_provider: Callable[[], TariffRule]) -> None:
        self._rule_provider = rule_provider

    def deposit(self) -> int:
        return self._rule_provider().deposit_price

    def initial_rent(self) -> int:
        return 0

    def prepay(self) -> int:
        # 支付时只收押金，租金在结单时按时长结算
        return self.deposit()

    def quote(self, start_time: datetime, end_time: datetime) -> Fee:
        return compute_fee(start_time, end_time, self._rule_provider())


class FlatBillingPolicy:
    mode = BillingMode.FLAT

    def __init__(self, rent: int, deposit: int) -> None:
        self._rent = rent
        self._deposit = deposit

    def deposit(self) -> int:
        return self._deposit

    def initial_rent(self) -> int:
        return self._rent

    def prepay(self) -> int:
        return self._rent + self._deposit

    def quote(self, start_time: datetime, end_time: datetime) -> Fee:
        return Fee(rent=self._rent, deposit=self._deposit)


def build_billing_policy(
    mode: BillingMode | str,
    *,
    tariff_store: TariffRuleStore,
    flat_rent: int = 0,
    flat_deposit: int = 0,
) -> BillingPolicy:
    """根据配置开关选择计费策略"""
    mode = BillingMode(mode)
    if mode is BillingMode.FLAT:
        return FlatBillingPolicy(rent=flat_rent, deposit=flat_deposit)
    return MeteredBillingPolicy(tariff_store.get)
