from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Awaitable, Callable, List, Optional, Sequence

from .config import Settings
from .locate import Locator
from .probe import Prober, probe_guarded
from .render import Frame, build_frame, paint
from .stats import HopRecord, ProbeOutcome
from .terminal import TerminalSink

log = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


async def pace(started: float, interval: float, clock: Clock, sleep: Sleep) -> None:
    """
    Sleep out the rest of the interval. A round that ran over starts the next
    one straight away; lost time is never made up.
    """
    elapsed = clock() - started
    remaining = interval - elapsed
    if remaining > 0:
        await sleep(remaining)
    else:
        log.debug("round took %.3fs, interval is %.3fs", elapsed, interval)


class Session:
    """
    Probe every hop distance once per round, all at the same time.

    The session starts out discovering: all distances up to max_hops are
    probed. The first round in which the target itself answers at distance d
    freezes the path at d hops; deeper records are dropped and never probed
    again.
    """

    def __init__(
        self,
        target: str,
        prober: Prober,
        settings: Settings,
        *,
        locator: Optional[Locator] = None,
        sink: Optional[TerminalSink] = None,
        header: Sequence[str] = (),
        clock: Clock = perf_counter,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.target = target
        self.prober = prober
        self.settings = settings
        self.locator = locator
        self.sink = sink
        self.header = list(header)
        self.clock = clock
        self.sleep = sleep

        self.max_hops = settings.max_hops
        self.active_hop_count = settings.max_hops
        self.converged = False
        self.round_number = 0
        self.records: List[HopRecord] = [
            HopRecord(d, locator, settings.window_size) for d in range(1, self.max_hops + 1)
        ]

    async def run_round(self) -> List[ProbeOutcome]:
        """Probe distances 1..active_hop_count concurrently and fold in the results."""
        active = self.active_hop_count
        outcomes = await asyncio.gather(
            *(
                probe_guarded(self.prober, self.target, hop, self.settings.timeout, strict=self.settings.strict)
                for hop in range(1, active + 1)
            )
        )
        self.round_number += 1

        if not self.converged:
            self._converge(outcomes)

        for rec, outcome in zip(self.records, outcomes):
            rec.update(outcome)
        return list(outcomes)

    def _converge(self, outcomes: Sequence[ProbeOutcome]) -> None:
        for hop, outcome in enumerate(outcomes, start=1):
            if outcome.replied and outcome.address == self.target:
                self.active_hop_count = hop
                del self.records[hop:]
                self.converged = True
                log.info("target %s reached at hop %d in round %d", self.target, hop, self.round_number)
                return

    def frame(self) -> Frame:
        return build_frame(self.header, self.records, self.active_hop_count, self.converged, self.round_number)

    def refresh(self) -> None:
        if self.sink is not None:
            paint(self.sink, self.frame())

    async def run(self, rounds: Optional[int] = None) -> None:
        """Run rounds at the configured cadence; forever unless `rounds` is given."""
        self.refresh()
        while rounds is None or self.round_number < rounds:
            started = self.clock()
            await self.run_round()
            self.refresh()
            if rounds is not None and self.round_number >= rounds:
                break
            await pace(started, self.settings.interval, self.clock, self.sleep)
