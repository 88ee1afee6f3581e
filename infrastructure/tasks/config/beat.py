"""Celery beat schedule configuration."""
from __future__ import annotations

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    "devices-offline-sweep": {
        "task": "devices.sweep_offline",
        "schedule": float(settings.device.sweep_interval_seconds),
        "kwargs": {"threshold_seconds": settings.device.offline_threshold_seconds},
    },
}
