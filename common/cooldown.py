from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional


class Channel(str, Enum):
    ALERT = "alert"
    SNAPSHOT = "snapshot"


@dataclass
class CooldownClock:
    """Named minimum-interval timer.

    A clock that has never fired is always fireable; afterwards it is
    fireable once strictly more than ``cooldown_ms`` has elapsed.
    """

    name: str
    cooldown_ms: float
    last_fired_ms: Optional[float] = None

    def fireable(self, now_ms: float) -> bool:
        if self.last_fired_ms is None:
            return True
        return (now_ms - self.last_fired_ms) > self.cooldown_ms

    def try_fire(self, now_ms: float) -> bool:
        if not self.fireable(now_ms):
            return False
        self.last_fired_ms = now_ms
        return True

    def reset(self) -> None:
        self.last_fired_ms = None


class CooldownGate:
    """Independent per-channel cooldown clocks.

    API:
        gate = CooldownGate({Channel.ALERT: 5000.0, Channel.SNAPSHOT: 3000.0})
        if gate.try_fire(Channel.ALERT, now_ms):
            ...
    """

    def __init__(self, cooldowns_ms: Mapping[Channel, float]) -> None:
        self._clocks: Dict[Channel, CooldownClock] = {
            ch: CooldownClock(name=ch.value, cooldown_ms=float(ms)) for ch, ms in cooldowns_ms.items()
        }

    def clock(self, channel: Channel) -> CooldownClock:
        return self._clocks[channel]

    def try_fire(self, channel: Channel, now_ms: float) -> bool:
        return self._clocks[channel].try_fire(now_ms)

    def reset(self) -> None:
        for clk in self._clocks.values():
            clk.reset()
