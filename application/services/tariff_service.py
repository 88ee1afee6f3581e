"""
计费规则管理服务
"""
from application.dto import TariffRuleDTO
from core.logging_config import get_logger
from domain.billing.service import TariffRuleStore

logger = get_logger(__name__)


class TariffService:
    def __init__(self, store: TariffRuleStore):
        self._store = store

    def get_rule(self) -> TariffRuleDTO:
        return TariffRuleDTO.from_rule(self._store.get())

    def update_rule(self, data: TariffRuleDTO) -> TariffRuleDTO:
        # 不做版本化：新规则对之后结单的订单立即生效
        rule = self._store.update(data.to_rule())
        logger.info("tariff_rule_updated", **rule.to_dict())
        return TariffRuleDTO.from_rule(rule)
