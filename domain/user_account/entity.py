"""
用户账户实体 - 以手机号标识的押金账户
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class UserAccount:
    """
    用户账户

    业务规则：
    1. 手机号唯一，首次下单时懒创建
    2. 押金余额以分为单位，不允许为负
    """

    id: Optional[int]
    phone: str
    deposit: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
