from domain.locker.entity import LockerRef
from infrastructure.external.door import SimulatedDoorActuator


async def test_simulated_open_succeeds_and_keeps_bounded_history():
    actuator = SimulatedDoorActuator(history_size=3)
    refs = [LockerRef("L0001", 1, door) for door in range(1, 6)]

    for ref in refs:
        result = await actuator.open(ref)
        assert result.success
        assert result.code == 200

    assert list(actuator.opened) == refs[-3:]


async def test_simulated_failure_is_reported_not_raised():
    actuator = SimulatedDoorActuator(fail=True)
    result = await actuator.open(LockerRef("L0001", 1, 1))
    assert not result.success
    assert len(actuator.opened) == 0
