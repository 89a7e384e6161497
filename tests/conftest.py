import asyncio
from collections import deque

import pytest

from mtrlive.config import Settings
from mtrlive.stats import ProbeOutcome


class FakeProber:
    """
    script: dict[hop or (target, hop)] -> list of replies returned one per call.
    A reply is (address, rtt_ms), None for a timeout, or an exception to raise.
    Once a hop's script is used up every call is a timeout.
    """

    def __init__(self, script=None, delay=0.0):
        self.script = {k: deque(v) for k, v in (script or {}).items()}
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe(self, target, hop, timeout):
        self.calls.append((target, hop))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            dq = self.script.get((target, hop)) or self.script.get(hop)
            item = dq.popleft() if dq else None
        finally:
            self.in_flight -= 1

        if isinstance(item, BaseException):
            raise item
        if item is None:
            return ProbeOutcome.loss(hop, timeout * 1000.0)
        addr, rtt = item
        return ProbeOutcome(hop=hop, address=addr, rtt_ms=rtt, succeeded=True)

    def hops_probed(self):
        return [hop for _target, hop in self.calls]


class RecordingSink:
    def __init__(self, height=40):
        self.height = height
        self.lines = {}
        self.cleared = set()
        self.cursor = None
        self.flushes = 0

    def write_line(self, row, text):
        self.lines[row] = text
        self.cleared.discard(row)

    def clear_line(self, row):
        self.lines.pop(row, None)
        self.cleared.add(row)

    def set_cursor(self, col, row):
        self.cursor = (col, row)

    def flush(self):
        self.flushes += 1

    def screen(self):
        return [self.lines[r] for r in sorted(self.lines)]


class DictLocator:
    def __init__(self, places=None, registrations=None):
        self.places = places or {}
        self.registrations = registrations or {}
        self.lookups = []

    def locate(self, address):
        self.lookups.append(address)
        return self.places.get(address, "")

    def registration(self, address):
        return self.registrations.get(address, "")


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def settings():
    return Settings(max_hops=5, timeout_ms=50, interval_ms=1000)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def locator():
    return DictLocator()


@pytest.fixture
def fake_sleep():
    return FakeSleep()
