import pytest
import structlog

from application.services import locker_coordinator
from domain.common.exceptions import (
    ConflictException,
    DomainValidationException,
    DoorOpenTimeoutException,
    HardwareFailureException,
    InsufficientDepositException,
    InternalErrorException,
    LockerNotFreeException,
    LockerOrderMismatchException,
    OrderInvalidStateException,
    OrderNotFoundException,
)
from domain.user_account.service import UserAccountStore
from infrastructure.repositories.locker_repository import SQLAlchemyLockerRepository
from infrastructure.repositories.user_repository import SQLAlchemyUserAccountRepository

PHONE = "13800000001"
OTHER_PHONE = "13800000002"


async def _deposit_of(uow_factory, phone):
    async with uow_factory(readonly=True) as uow:
        account = await uow.user_account_repository.get_by_phone(phone)
        return account.deposit


async def _paid_order(coordinator, locker, phone=PHONE):
    order = await coordinator.create_order(locker.id, phone)
    return await coordinator.mock_pay_success(order.id)


async def test_full_rental_cycle(coordinator, lockers, clock, uow_factory, actuator, check_invariants):
    locker = lockers[0]
    order = await coordinator.create_order(locker.id, PHONE)
    assert order.status == "PENDING_PAY"
    assert order.deposit == 1500
    assert len(order.retrieval_code) == 6

    free_ids = [item.id for item in await coordinator.list_free("L0001")]
    assert locker.id not in free_ids
    assert len(free_ids) == 3
    await check_invariants()

    paid = await coordinator.mock_pay_success(order.id)
    assert paid.status == "IN_PROGRESS"
    assert paid.pay_amount == 1500
    assert await _deposit_of(uow_factory, PHONE) == 1500

    clock.advance(minutes=5)
    stored = await coordinator.open_door(locker.ref, order.id, "store")
    assert stored.locker.status == "occupied"
    assert stored.locker.last_open_at is not None
    assert stored.order.stored_at is not None
    assert (stored.order.device_id, stored.order.cabinet_no, stored.order.door_no) == ("L0001", 1, 1)

    found = await coordinator.query_by_phone_and_code(PHONE, order.retrieval_code, "L0001")
    assert found.id == order.id

    clock.advance(minutes=90)
    taken = await coordinator.open_door(locker.ref, order.id, "take")
    assert taken.locker.status == "free"
    assert taken.locker.current_order_id is None
    await check_invariants()

    finished = await coordinator.finish_order(order.id)
    assert finished.status == "COMPLETED"
    assert finished.rent == 400
    assert finished.pay_amount == 1900
    assert actuator.calls == [locker.ref, locker.ref]
    await check_invariants()


async def test_custom_code_is_kept(coordinator, lockers):
    order = await coordinator.create_order(lockers[0].id, PHONE, "4321")
    assert order.retrieval_code == "4321"


async def test_input_validation_runs_before_any_write(coordinator, lockers):
    with pytest.raises(DomainValidationException):
        await coordinator.create_order(lockers[0].id, "12345")
    with pytest.raises(DomainValidationException):
        await coordinator.create_order(lockers[0].id, PHONE, "12")
    assert len(await coordinator.list_free()) == 4


async def test_occupied_locker_cannot_be_rented_twice(coordinator, lockers):
    await coordinator.create_order(lockers[0].id, PHONE)
    with pytest.raises(LockerNotFreeException):
        await coordinator.create_order(lockers[0].id, OTHER_PHONE)


async def test_take_with_mismatched_order_is_rejected(coordinator, lockers, actuator, check_invariants):
    first = await _paid_order(coordinator, lockers[0])
    second = await _paid_order(coordinator, lockers[1], OTHER_PHONE)

    with pytest.raises(LockerOrderMismatchException):
        await coordinator.open_door(lockers[0].ref, second.id, "take")

    assert actuator.calls == []
    locker = await coordinator.find_locker(lockers[0].ref)
    assert locker.current_order_id == first.id
    await check_invariants()


async def test_store_requires_paid_order(coordinator, lockers, actuator):
    order = await coordinator.create_order(lockers[0].id, PHONE)
    with pytest.raises(OrderInvalidStateException):
        await coordinator.open_door(lockers[0].ref, order.id, "store")
    assert actuator.calls == []
    assert (await coordinator.get_order(order.id)).status == "PENDING_PAY"


async def test_unknown_mode_is_rejected(coordinator, lockers):
    order = await _paid_order(coordinator, lockers[0])
    with pytest.raises(DomainValidationException):
        await coordinator.open_door(lockers[0].ref, order.id, "peek")


async def test_hardware_failure_compensates(coordinator, lockers, actuator, check_invariants):
    order = await _paid_order(coordinator, lockers[0])
    actuator.fail = True

    with pytest.raises(HardwareFailureException):
        await coordinator.open_door(lockers[0].ref, order.id, "store")

    assert (await coordinator.get_order(order.id)).status == "CANCELLED"
    locker = await coordinator.find_locker(lockers[0].ref)
    assert locker.status == "free"
    assert locker.current_order_id is None
    await check_invariants()


async def test_door_timeout_is_a_hardware_failure(coordinator, lockers, actuator, check_invariants):
    order = await _paid_order(coordinator, lockers[0])
    actuator.delay_seconds = 1.0

    with pytest.raises(DoorOpenTimeoutException) as exc_info:
        await coordinator.open_door(lockers[0].ref, order.id, "store")

    assert exc_info.value.error_type == "HardwareFailure"
    assert (await coordinator.get_order(order.id)).status == "CANCELLED"
    assert (await coordinator.find_locker(lockers[0].ref)).status == "free"
    await check_invariants()


async def test_unexpected_actuator_error_is_wrapped(coordinator, lockers, actuator, check_invariants):
    order = await _paid_order(coordinator, lockers[0])
    actuator.error = RuntimeError("serial port closed")

    with pytest.raises(InternalErrorException):
        await coordinator.open_door(lockers[0].ref, order.id, "store")

    assert (await coordinator.get_order(order.id)).status == "CANCELLED"
    await check_invariants()


async def test_failed_take_cancels_order(coordinator, lockers, actuator, check_invariants):
    order = await _paid_order(coordinator, lockers[0])
    await coordinator.open_door(lockers[0].ref, order.id, "store")
    actuator.fail = True

    with pytest.raises(HardwareFailureException):
        await coordinator.open_door(lockers[0].ref, order.id, "take")

    assert (await coordinator.get_order(order.id)).status == "CANCELLED"
    assert (await coordinator.find_locker(lockers[0].ref)).status == "free"
    await check_invariants()


async def test_concurrent_store_loses_with_conflict(coordinator, lockers, actuator, check_invariants):
    order = await _paid_order(coordinator, lockers[0])

    async def store_in_between(ref):
        await coordinator.open_door(ref, order.id, "store")

    actuator.hook = store_in_between
    with pytest.raises(ConflictException):
        await coordinator.open_door(lockers[0].ref, order.id, "store")

    # 冲突为终态错误，不做补偿
    current = await coordinator.get_order(order.id)
    assert current.status == "IN_PROGRESS"
    assert current.stored_at is not None
    assert (await coordinator.find_locker(lockers[0].ref)).current_order_id == order.id
    assert len(actuator.calls) == 2
    await check_invariants()


async def test_concurrent_create_order_conflict(coordinator, lockers, monkeypatch, check_invariants):
    original = SQLAlchemyLockerRepository.get_for_update
    winners = []

    async def racing_get_for_update(self, locker_id):
        locker = await original(self, locker_id)
        if not winners:
            winners.append(None)
            winners[0] = await coordinator.create_order(locker_id, OTHER_PHONE)
        return locker

    monkeypatch.setattr(SQLAlchemyLockerRepository, "get_for_update", racing_get_for_update)

    with pytest.raises(ConflictException):
        await coordinator.create_order(lockers[0].id, PHONE)

    locker = await coordinator.find_locker(lockers[0].ref)
    assert locker.current_order_id == winners[0].id
    await check_invariants()


async def test_order_events_are_logged_after_commit(coordinator, lockers, monkeypatch):
    capture = structlog.testing.LogCapture()
    monkeypatch.setattr(
        locker_coordinator,
        "logger",
        structlog.wrap_logger(None, processors=[capture], wrapper_class=structlog.stdlib.BoundLogger),
    )

    order = await coordinator.create_order(lockers[0].id, PHONE)
    paid = await coordinator.mock_pay_success(order.id)

    assert paid.status == "IN_PROGRESS"
    events = [entry for entry in capture.entries if entry["event"] == "order_event"]
    assert [entry["event_name"] for entry in events] == ["OrderCreated", "OrderPaid"]
    assert all(entry["order_id"] == order.id for entry in events)


async def test_concurrent_first_orders_share_one_account(coordinator, lockers, uow_factory, monkeypatch,
                                                          check_invariants):
    original = SQLAlchemyUserAccountRepository.get_by_phone
    rivals = []

    async def racing_get_by_phone(self, phone):
        account = await original(self, phone)
        if not rivals:
            rivals.append(None)
            rivals[0] = await coordinator.create_order(lockers[1].id, phone)
        return account

    monkeypatch.setattr(SQLAlchemyUserAccountRepository, "get_by_phone", racing_get_by_phone)

    order = await coordinator.create_order(lockers[0].id, PHONE)

    assert order.status == "PENDING_PAY"
    assert rivals[0].status == "PENDING_PAY"
    assert order.user_id == rivals[0].user_id
    assert await _deposit_of(uow_factory, PHONE) == 0
    await check_invariants()


async def test_finish_requires_in_progress(coordinator, lockers):
    order = await coordinator.create_order(lockers[0].id, PHONE)
    with pytest.raises(OrderInvalidStateException):
        await coordinator.finish_order(order.id)


async def test_finish_releases_still_bound_locker(coordinator, lockers, check_invariants):
    order = await _paid_order(coordinator, lockers[0])
    await coordinator.open_door(lockers[0].ref, order.id, "store")

    finished = await coordinator.finish_order(order.id)
    assert finished.status == "COMPLETED"
    assert (await coordinator.find_locker(lockers[0].ref)).status == "free"
    await check_invariants()


async def test_refund_debits_deposit(coordinator, lockers, uow_factory, check_invariants):
    order = await _paid_order(coordinator, lockers[0])
    await coordinator.finish_order(order.id)

    refunded = await coordinator.refund(order.id)
    assert refunded.status == "REFUNDED"
    assert refunded.refund_amount == refunded.pay_amount
    assert await _deposit_of(uow_factory, PHONE) == 0
    await check_invariants()


async def test_refund_in_progress_releases_locker(coordinator, lockers, uow_factory, check_invariants):
    order = await _paid_order(coordinator, lockers[0])

    refunded = await coordinator.refund(order.id)
    assert refunded.status == "REFUNDED"
    assert (await coordinator.find_locker(lockers[0].ref)).status == "free"
    assert await _deposit_of(uow_factory, PHONE) == 0
    await check_invariants()


async def test_refund_with_insufficient_deposit_rolls_back(coordinator, lockers, uow_factory):
    order = await _paid_order(coordinator, lockers[0])
    async with uow_factory() as uow:
        await UserAccountStore(uow.user_account_repository).debit_deposit(order.user_id, 1000)

    with pytest.raises(InsufficientDepositException):
        await coordinator.refund(order.id)

    assert (await coordinator.get_order(order.id)).status == "IN_PROGRESS"
    assert await _deposit_of(uow_factory, PHONE) == 500


async def test_force_finish_always_releases(coordinator, lockers, check_invariants):
    order = await _paid_order(coordinator, lockers[0])

    finished = await coordinator.force_finish(order.id)
    assert finished.status == "FORCE_FINISHED"
    assert finished.end_time is not None
    assert (await coordinator.find_locker(lockers[0].ref)).status == "free"

    with pytest.raises(OrderInvalidStateException):
        await coordinator.force_finish(order.id)
    await check_invariants()


async def test_recover_cancels_and_frees(coordinator, lockers, check_invariants):
    order = await coordinator.create_order(lockers[0].id, PHONE)

    recovered = await coordinator.recover_order(order.id)
    assert recovered.status == "CANCELLED"
    assert (await coordinator.find_locker(lockers[0].ref)).status == "free"
    await check_invariants()


async def test_recover_rejects_other_targets(coordinator, lockers):
    order = await coordinator.create_order(lockers[0].id, PHONE)
    with pytest.raises(DomainValidationException):
        await coordinator.recover_order(order.id, "COMPLETED")
    assert (await coordinator.get_order(order.id)).status == "PENDING_PAY"


async def test_release_locker_cancels_bound_order(coordinator, lockers, check_invariants):
    order = await _paid_order(coordinator, lockers[0])

    released = await coordinator.release_locker(lockers[0].ref)
    assert released.status == "free"
    assert (await coordinator.get_order(order.id)).status == "CANCELLED"
    await check_invariants()

    again = await coordinator.release_locker(lockers[0].ref)
    assert again.status == "free"


async def test_query_and_lookup_misses(coordinator, lockers):
    assert await coordinator.query_by_phone_and_code(PHONE, "123456") is None
    with pytest.raises(DomainValidationException):
        await coordinator.query_by_phone_and_code("abc", "123456")
    with pytest.raises(OrderNotFoundException):
        await coordinator.get_order(999)
