"""
HTTP door actuator

向柜机控制器发送 openDoor 指令：
- 每台设备一个 base URL（settings.door.hardware_map）
- 网络错误与 5xx 按配置重试（tenacity），默认不重试
- 控制器返回体 {code: 200, success: true} 视为开门成功
"""
from __future__ import annotations

import time
from typing import Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging_config import get_logger
from domain.common.exceptions import HardwareFailureException
from domain.locker.entity import LockerRef
from domain.services.door_actuator import DoorOpenResult
from shared.codes.locker_codes import HARDWARE_SUCCESS_CODE

logger = get_logger(__name__)

RETRY_STATUS_CODES = {502, 503, 504}


class _RetryableDoorError(Exception):
    pass


class HttpDoorActuator:
    """Cabinet controller HTTP bridge."""

    name = "http"

    def __init__(
        self,
        hardware_map: Dict[str, str],
        *,
        timeout: float = 5.0,
        max_retries: int = 0,
        retry_delay: float = 0.2,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.hardware_map = {k: v.rstrip("/") for k, v in hardware_map.items()}
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _url_for(self, ref: LockerRef) -> str:
        base = self.hardware_map.get(ref.device_id)
        if not base:
            raise HardwareFailureException(
                f"No controller configured for device {ref.device_id}",
                details={"device_id": ref.device_id},
            )
        return f"{base}/openDoor"

    async def _post_once(self, url: str, ref: LockerRef) -> httpx.Response:
        client = await self._get_client()
        payload = {
            "deviceKey": ref.device_id,
            "cabinetNo": ref.cabinet_no,
            "doorNo": ref.door_no,
            "timestamp": int(time.time() * 1000),
        }
        try:
            response = await client.post(url, json=payload)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise _RetryableDoorError(str(e)) from e
        if response.status_code in RETRY_STATUS_CODES:
            raise _RetryableDoorError(f"controller returned {response.status_code}")
        return response

    async def open(self, ref: LockerRef) -> DoorOpenResult:
        url = self._url_for(ref)
        response: Optional[httpx.Response] = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_exponential(multiplier=self.retry_delay, max=2.0),
                retry=retry_if_exception_type(_RetryableDoorError),
                reraise=True,
            ):
                with attempt:
                    response = await self._post_once(url, ref)
        except _RetryableDoorError as e:
            logger.warning("door_controller_unreachable", locker=str(ref), url=url, error=str(e))
            raise HardwareFailureException(
                f"Door controller unreachable: {e}",
                details={"locker": str(ref)},
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        raw_code = body.get("code", response.status_code)
        try:
            code = int(raw_code)
        except (TypeError, ValueError):
            logger.warning("door_controller_bad_code", locker=str(ref), status_code=response.status_code,
                           code=raw_code)
            raise HardwareFailureException(
                f"Door controller returned an unreadable code: {raw_code!r}",
                details={"locker": str(ref), "hardware_code": str(raw_code)},
            ) from None
        success = (
            response.is_success
            and code == HARDWARE_SUCCESS_CODE
            and bool(body.get("success"))
        )
        message = body.get("msg", "")
        logger.info("door_controller_response", locker=str(ref), status_code=response.status_code,
                    code=code, success=success)
        return DoorOpenResult(success=success, code=code, message=message, raw=body)
