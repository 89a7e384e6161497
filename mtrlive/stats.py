from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Deque, List, Optional

if TYPE_CHECKING:
    from .locate import Locator

WINDOW_SIZE = 10


@dataclass(frozen=True)
class ProbeOutcome:
    hop: int
    address: Optional[str]
    rtt_ms: float
    succeeded: bool

    @classmethod
    def loss(cls, hop: int, rtt_ms: float = 0.0) -> "ProbeOutcome":
        return cls(hop=hop, address=None, rtt_ms=rtt_ms, succeeded=False)

    @property
    def replied(self) -> bool:
        return self.succeeded and self.address is not None


class HopRecord:
    """
    Statistics for one hop distance.

    Successful replies go into a FIFO window of the most recent samples; every
    attempt counts toward the cumulative totals. Averages and jitter are taken
    over the window only, loss over the whole run. Every accessor recomputes
    from the window on read.
    """

    def __init__(self, hop: int, locator: Optional["Locator"] = None, window_size: int = WINDOW_SIZE) -> None:
        self.hop = hop
        self.locator = locator
        self.window: Deque[ProbeOutcome] = deque(maxlen=window_size)
        self.total_attempts = 0
        self.total_losses = 0
        self._replied = False

    def update(self, outcome: ProbeOutcome) -> None:
        self.total_attempts += 1
        if outcome.replied:
            self.window.append(outcome)
            self._replied = True
        else:
            self.total_losses += 1

    @property
    def samples(self) -> List[float]:
        return [o.rtt_ms for o in self.window]

    @property
    def has_replied(self) -> bool:
        """True once any reply with an address was recorded at this distance."""
        return self._replied

    @property
    def avg_rtt(self) -> Optional[float]:
        if not self.window:
            return None
        return sum(o.rtt_ms for o in self.window) / len(self.window)

    @property
    def jitter(self) -> float:
        avg = self.avg_rtt
        if avg is None:
            return 0.0
        return max(abs(o.rtt_ms - avg) for o in self.window)

    @property
    def loss_pct(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return 100.0 * self.total_losses / self.total_attempts

    @property
    def address(self) -> Optional[str]:
        # oldest entry still in the window, not the latest reply
        for o in self.window:
            if o.address is not None:
                return o.address
        return None

    @property
    def location(self) -> Optional[str]:
        addr = self.address
        if addr is None:
            return None
        if self.locator is None:
            return ""
        return self.locator.locate(addr)
