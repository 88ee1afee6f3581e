"""
配置文件 - 项目配置管理
"""
import json
from typing import Annotated, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_str_list(v):
    """允许 JSON 字符串或逗号分隔字符串两种格式。"""
    if v is None:
        return []
    if isinstance(v, (list, tuple, set)):
        return [str(item).strip() for item in v if str(item).strip()]
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        if s.startswith("[") and s.endswith("]"):
            try:
                arr = json.loads(s)
            except ValueError:
                arr = None
            if isinstance(arr, list):
                return [str(item).strip() for item in arr if str(item).strip()]
        return [item.strip() for item in s.split(",") if item.strip()]
    return v


class RedisSettings(BaseModel):
    # Celery broker / result backend
    url: Optional[str] = None


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./locker.db"
    echo: bool = False


class TariffSettings(BaseModel):
    """默认计费规则（金额单位：分）"""
    free_minutes: int = 0
    first_period_minutes: int = 0
    first_period_price: int = 0
    unit_minutes: int = 30
    unit_price: int = 0
    cap_price: int = 0
    deposit_price: int = 0


class BillingSettings(BaseModel):
    mode: str = Field(default="metered", description="metered | flat")
    flat_rent: int = 0
    flat_deposit: int = 15
    tariff: TariffSettings = Field(default_factory=TariffSettings)


class DoorSettings(BaseModel):
    driver: str = Field(default="simulated", description="simulated | http")
    timeout_seconds: float = 5.0
    max_retries: int = 0
    # device_id -> 柜机控制器 base URL
    hardware_map: dict[str, str] = Field(default_factory=dict)
    simulate_failure: bool = False
    simulate_delay_seconds: float = 0.0


class DeviceSettings(BaseModel):
    offline_threshold_seconds: int = 300
    sweep_interval_seconds: int = 60


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Smart Locker Service")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：采用嵌套模型，环境变量形如 DATABASE__URL / BILLING__MODE
    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    billing: BillingSettings = Field(default_factory=BillingSettings)
    door: DoorSettings = Field(default_factory=DoorSettings)
    device: DeviceSettings = Field(default_factory=DeviceSettings)

    # 管理员白名单（小程序 openid 等客户端身份）
    ADMIN_IDENTITIES: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # CORS配置
    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
    )

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", "ADMIN_IDENTITIES", mode="before")
    @classmethod
    def _parse_lists(cls, v):
        return _parse_str_list(v)


settings = Settings()
