from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Dict, List, Optional, Sequence, Tuple

from .config import Settings
from .locate import Locator
from .probe import Prober, probe_guarded
from .render import Frame, build_frame, paint
from .session import Clock, Sleep, pace
from .stats import HopRecord, ProbeOutcome
from .terminal import TerminalSink

log = logging.getLogger(__name__)

# TTL used when pinging a discovered hop directly
DIRECT_TTL = 64


class DiscoverySession:
    """
    Discovery and display on separate schedules.

    A producer task walks the hop distances until the target answers and puts
    every newly found hop on a queue. Each render tick drains that queue once,
    creating a record for each hop and starting a loop that pings the hop's own
    address once per interval.
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
        self.converged = False
        self.ticks = 0
        # index d-1 holds distance d; None until that hop is discovered
        self.records: List[Optional[HopRecord]] = []
        self.found: "asyncio.Queue[ProbeOutcome]" = asyncio.Queue()
        self._known: Dict[int, str] = {}
        self._tasks: List["asyncio.Task[None]"] = []

    # ---------- producer ----------

    async def discover_pass(self) -> bool:
        """One walk over the unknown distances. Returns True once the target answered."""
        for hop in range(1, self.max_hops + 1):
            if hop in self._known:
                continue
            outcome = await probe_guarded(
                self.prober, self.target, hop, self.settings.timeout, strict=self.settings.strict
            )
            if not outcome.replied:
                continue
            self._known[hop] = outcome.address
            self.found.put_nowait(outcome)
            if outcome.address == self.target:
                log.info("target %s reached at hop %d", self.target, hop)
                return True
        return False

    async def discover(self) -> None:
        while True:
            started = self.clock()
            if await self.discover_pass():
                return
            await pace(started, self.settings.interval, self.clock, self.sleep)

    # ---------- consumer ----------

    def drain(self) -> List[Tuple[int, str]]:
        """Take every hop discovered since the last tick."""
        added = []
        while True:
            try:
                outcome = self.found.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._add_hop(outcome)
            added.append((outcome.hop, outcome.address))
        return added

    def _add_hop(self, outcome: ProbeOutcome) -> None:
        while len(self.records) < outcome.hop:
            self.records.append(None)
        rec = HopRecord(outcome.hop, self.locator, self.settings.window_size)
        rec.update(outcome)
        self.records[outcome.hop - 1] = rec
        if outcome.address == self.target:
            self.converged = True
        self._tasks.append(asyncio.ensure_future(self._ping_loop(rec, outcome.address)))

    async def _ping_loop(self, rec: HopRecord, address: str) -> None:
        while True:
            started = self.clock()
            outcome = await probe_guarded(
                self.prober, address, DIRECT_TTL, self.settings.timeout, strict=self.settings.strict
            )
            rec.update(outcome)
            await pace(started, self.settings.interval, self.clock, self.sleep)

    # ---------- display ----------

    def frame(self) -> Frame:
        return build_frame(self.header, self.records, len(self.records), self.converged, self.ticks)

    def refresh(self) -> None:
        if self.sink is not None:
            paint(self.sink, self.frame())

    async def run(self, rounds: Optional[int] = None) -> None:
        producer = asyncio.ensure_future(self.discover())
        self._tasks.append(producer)
        try:
            while rounds is None or self.ticks < rounds:
                started = self.clock()
                self.drain()
                self.ticks += 1
                self.refresh()
                # a strict-mode failure in any loop ends the run
                for task in self._tasks:
                    if task.done() and not task.cancelled() and task.exception() is not None:
                        raise task.exception()
                if rounds is not None and self.ticks >= rounds:
                    break
                await pace(started, self.settings.interval, self.clock, self.sleep)
        finally:
            await self.stop()

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        # results are already reported by run(); only wait for the loops to unwind
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
