"""
设备实体 - 柜机主控板
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

DEVICE_ID_PREFIX = "L"
DEVICE_ID_WIDTH = 4


def format_device_id(seq: int) -> str:
    """L0001 形式的设备编号"""
    return f"{DEVICE_ID_PREFIX}{seq:0{DEVICE_ID_WIDTH}d}"


def parse_device_seq(device_id: str) -> Optional[int]:
    if not device_id.startswith(DEVICE_ID_PREFIX):
        return None
    tail = device_id[len(DEVICE_ID_PREFIX):]
    return int(tail) if tail.isdigit() else None


@dataclass
class Device:
    id: Optional[int]
    device_id: str
    is_online: bool = False
    last_login_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def login(self, now: datetime) -> None:
        self.is_online = True
        self.last_login_time = now
        self.updated_at = now

    def heartbeat(self, now: datetime) -> None:
        self.is_online = True
        self.updated_at = now
