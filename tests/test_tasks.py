from infrastructure.tasks.config.beat import CELERY_BEAT_SCHEDULE
from infrastructure.tasks.tasks import devices as device_tasks


def test_offline_sweep_is_scheduled():
    job = CELERY_BEAT_SCHEDULE["devices-offline-sweep"]
    assert job["task"] == device_tasks.sweep_offline_devices.name == "devices.sweep_offline"
    assert job["schedule"] == 60.0
    assert job["kwargs"] == {"threshold_seconds": 300}


def test_sweep_task_runs_device_service(monkeypatch):
    seen = []

    async def fake_sweep(threshold_seconds):
        seen.append(threshold_seconds)
        return 3

    monkeypatch.setattr(device_tasks, "_sweep", fake_sweep)

    assert device_tasks.sweep_offline_devices(threshold_seconds=10) == 3
    assert device_tasks.sweep_offline_devices() == 3
    assert seen == [10, 300]
