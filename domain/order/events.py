"""
Order domain events.

Dataclass events record important order lifecycle facts for downstream handling
(logging today, messaging later). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderEvent:
    order_id: int
    locker_id: Optional[int] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass
class OrderCreated(OrderEvent):
    phone: str = ""


@dataclass
class OrderPaid(OrderEvent):
    amount: int = 0


@dataclass
class OrderFinished(OrderEvent):
    rent: int = 0
    pay_amount: int = 0


@dataclass
class OrderForceFinished(OrderEvent):
    pass


@dataclass
class OrderRefunded(OrderEvent):
    amount: int = 0


@dataclass
class OrderCancelled(OrderEvent):
    reason: Optional[str] = None
