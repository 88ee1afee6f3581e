"""Device maintenance Celery tasks"""
from __future__ import annotations

import asyncio

from celery import shared_task

from ..utils.base_task import BaseTask
from application.services.device_service import DeviceService
from core.config import settings
from core.logging_config import get_logger
from infrastructure.database import build_engine, build_session_factory
from infrastructure.unit_of_work import make_uow_factory

logger = get_logger(__name__)


async def _sweep(threshold_seconds: int) -> int:
    # 每次任务独立引擎，避免跨事件循环复用连接池
    engine = build_engine(settings.database.url)
    try:
        service = DeviceService(make_uow_factory(build_session_factory(engine)))
        return await service.sweep_offline(threshold_seconds)
    finally:
        await engine.dispose()


@shared_task(
    name="devices.sweep_offline",
    bind=True,
    base=BaseTask,
    max_retries=0,
    ignore_result=True,
)
def sweep_offline_devices(self, threshold_seconds: int | None = None) -> int:
    """心跳超时设备置为离线；只修改 devices 表"""
    threshold = threshold_seconds or settings.device.offline_threshold_seconds
    count = asyncio.run(_sweep(threshold))
    logger.info("device_offline_sweep_done", marked_offline=count, threshold_seconds=threshold)
    return count
