"""HTTP header names and helpers shared by middleware and routes."""
from __future__ import annotations

from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"
# 小程序 openid 等调用方身份
CLIENT_IDENTITY_HEADER = "X-Client-Identity"


def clean_identity(value: Optional[str]) -> Optional[str]:
    """Strip whitespace and control characters; empty becomes None."""
    if not value:
        return None
    cleaned = value.replace("\r", "").replace("\n", "").strip()
    return cleaned or None
