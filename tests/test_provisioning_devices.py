import pytest

from application.services.device_service import DeviceService, format_door_sort
from application.services.provisioning_service import ProvisioningService
from domain.common.exceptions import (
    DeviceNotFoundException,
    DomainValidationException,
    InternalErrorException,
    LockerAlreadyExistsException,
    NotFoundException,
)

PHONE = "13800000001"


async def test_device_ids_continue_after_current_max(uow_factory):
    provisioning = ProvisioningService(uow_factory)

    first = await provisioning.bulk_create_devices(3)
    assert first.created == ["L0001", "L0002", "L0003"]

    second = await provisioning.bulk_create_devices(2)
    assert second.created == ["L0004", "L0005"]

    with pytest.raises(DomainValidationException):
        await provisioning.bulk_create_devices(0)


async def test_bulk_create_lockers(uow_factory):
    provisioning = ProvisioningService(uow_factory)
    await provisioning.bulk_create_devices(1)

    result = await provisioning.bulk_create_lockers("L0001", 2, 3)
    assert result.created == 6

    async with uow_factory(readonly=True) as uow:
        slots = [(l.cabinet_no, l.door_no) for l in await uow.locker_repository.list_all("L0001")]
    assert slots == [(1, 1), (1, 2), (1, 3), (2, 1), (2, 2), (2, 3)]

    with pytest.raises(LockerAlreadyExistsException):
        await provisioning.bulk_create_lockers("L0001", 1, 1)
    with pytest.raises(DeviceNotFoundException):
        await provisioning.bulk_create_lockers("L0999", 1, 1)


def test_door_sort_is_two_digit_pairs():
    assert format_door_sort(2, 3) == "0203"
    assert format_door_sort(12, 10) == "1210"


async def test_login_heartbeat_and_sweep(uow_factory):
    await ProvisioningService(uow_factory).bulk_create_devices(2)
    devices = DeviceService(uow_factory)

    with pytest.raises(DeviceNotFoundException):
        await devices.login("L0404")

    logged_in = await devices.login("L0001")
    assert logged_in.is_online
    assert logged_in.last_login_time is not None

    beat = await devices.heartbeat("L0002")
    assert beat.is_online
    assert beat.last_login_time is None

    assert await devices.sweep_offline(300) == 0
    async with uow_factory(readonly=True) as uow:
        before = await uow.device_repository.get_by_device_id("L0001")
    assert await devices.sweep_offline(-60) == 2

    async with uow_factory(readonly=True) as uow:
        device = await uow.device_repository.get_by_device_id("L0001")
    assert device.is_online is False
    assert device.updated_at > before.updated_at


async def test_open_by_phone_takes_parcel(uow_factory, coordinator, lockers, actuator, check_invariants):
    devices = DeviceService(uow_factory, coordinator)
    target = lockers[3]
    order = await coordinator.create_order(target.id, PHONE)
    await coordinator.mock_pay_success(order.id)
    await coordinator.open_door(target.ref, order.id, "store")

    result = await devices.open_by_phone("L0001", PHONE, order.retrieval_code)
    assert result.order_id == order.id
    assert result.door_sort == "0202"
    assert result.status == "COMPLETED"
    assert (await coordinator.get_order(order.id)).status == "COMPLETED"
    assert (await coordinator.find_locker(target.ref)).status == "free"
    assert actuator.calls[-1] == target.ref
    await check_invariants()


async def test_open_by_phone_tolerates_order_closed_meanwhile(uow_factory, coordinator, lockers, monkeypatch):
    devices = DeviceService(uow_factory, coordinator)
    target = lockers[0]
    order = await coordinator.create_order(target.id, PHONE)
    await coordinator.mock_pay_success(order.id)
    await coordinator.open_door(target.ref, order.id, "store")

    original_finish = coordinator.finish_order

    async def finish_twice(order_id):
        await original_finish(order_id)
        return await original_finish(order_id)

    monkeypatch.setattr(coordinator, "finish_order", finish_twice)

    result = await devices.open_by_phone("L0001", PHONE, order.retrieval_code)
    assert result.status == "COMPLETED"
    assert (await coordinator.find_locker(target.ref)).status == "free"


async def test_open_by_phone_misses(uow_factory, coordinator, lockers):
    devices = DeviceService(uow_factory, coordinator)
    with pytest.raises(NotFoundException):
        await devices.open_by_phone("L0001", PHONE, "123456")
    with pytest.raises(DeviceNotFoundException):
        await devices.open_by_phone("L0404", PHONE, "123456")
    with pytest.raises(DomainValidationException):
        await devices.open_by_phone("L0001", "138", "123456")
    with pytest.raises(InternalErrorException):
        await DeviceService(uow_factory).open_by_phone("L0001", PHONE, "123456")
