"""Events drained by the engine's dispatch loop.

Timers and host notifications never touch engine state directly; they post
one of these and the loop handles them one at a time, in order.
"""

from dataclasses import dataclass, field
from enum import Enum


class EngineState(str, Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    AWAITING_MEASUREMENT = 'awaiting_measurement'
    GROWING = 'growing'


@dataclass(frozen=True)
class ScrollSettled:
    pass


@dataclass(frozen=True)
class RescanRequested:
    reason: str = ''


@dataclass(frozen=True)
class MeasurementReady:
    item_id: object
    # None when the host reports readiness itself; otherwise the token of
    # the measurement request that scheduled this event.
    token: int | None = None


@dataclass(frozen=True)
class GrowthReady:
    token: int


@dataclass(frozen=True)
class ItemsReplaced:
    items: list = field(default_factory=list)
