import json

import httpx
import pytest

from domain.common.exceptions import HardwareFailureException
from domain.locker.entity import LockerRef
from infrastructure.external.door import HttpDoorActuator

REF = LockerRef("L0001", 2, 3)
HARDWARE_MAP = {"L0001": "http://cabinet-1.local/api/"}


def _actuator(handler, max_retries=0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDoorActuator(HARDWARE_MAP, max_retries=max_retries, retry_delay=0, client=client)


async def test_open_posts_command_and_reports_success():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": 200, "success": True, "msg": "ok"})

    result = await _actuator(handler).open(REF)

    assert result.success
    assert result.code == 200
    assert str(seen[0].url) == "http://cabinet-1.local/api/openDoor"
    payload = json.loads(seen[0].content)
    assert (payload["deviceKey"], payload["cabinetNo"], payload["doorNo"]) == ("L0001", 2, 3)


async def test_controller_rejection_is_not_success():
    def handler(request):
        return httpx.Response(200, json={"code": 500, "success": False, "msg": "door jammed"})

    result = await _actuator(handler).open(REF)
    assert not result.success
    assert result.code == 500
    assert result.message == "door jammed"


async def test_gateway_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"code": 200, "success": True})

    result = await _actuator(handler, max_retries=1).open(REF)
    assert result.success
    assert len(attempts) == 2


async def test_unreachable_controller_raises_hardware_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(HardwareFailureException):
        await _actuator(handler).open(REF)


async def test_unknown_device_raises_hardware_failure():
    def handler(request):
        return httpx.Response(200, json={"code": 200, "success": True})

    with pytest.raises(HardwareFailureException):
        await _actuator(handler).open(LockerRef("L0404", 1, 1))


async def test_unreadable_controller_code_raises_hardware_failure():
    def handler(request):
        return httpx.Response(200, json={"code": "FAIL", "success": False})

    with pytest.raises(HardwareFailureException) as exc_info:
        await _actuator(handler).open(REF)
    assert exc_info.value.details["hardware_code"] == "FAIL"


async def test_non_object_body_is_not_success():
    def handler(request):
        return httpx.Response(200, json=["ok"])

    result = await _actuator(handler).open(REF)
    assert not result.success
    assert result.raw == {}
