from types import SimpleNamespace

import pytest
from icmplib import DestinationUnreachable, SocketPermissionError, TimeExceeded, TimeoutExceeded

from mtrlive import pinger
from mtrlive.errors import ProbeTransportError
from mtrlive.pinger import IcmpProber


def bare(exc_type):
    # icmplib exceptions want a reply object; tests only need the type
    return exc_type.__new__(exc_type)


class FakeReply:
    def __init__(self, source, time, error=None):
        self.source = source
        self.time = time
        self.error = error

    def raise_for_status(self):
        if self.error is not None:
            raise self.error


class FakeSocket:
    instances = []

    def __init__(self, privileged=True):
        self.privileged = privileged
        self.closed = False
        FakeSocket.instances.append(self)

    def close(self):
        self.closed = True


class FakeAsyncSocket:
    reply = None
    failure = None
    sent = []

    def __init__(self, sock):
        self.sock = sock

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.sock.close()

    def send(self, request):
        FakeAsyncSocket.sent.append(request)

    async def receive(self, request, timeout):
        if FakeAsyncSocket.failure is not None:
            raise FakeAsyncSocket.failure
        return FakeAsyncSocket.reply


@pytest.fixture
def icmp(monkeypatch):
    FakeSocket.instances = []
    FakeAsyncSocket.reply = None
    FakeAsyncSocket.failure = None
    FakeAsyncSocket.sent = []
    monkeypatch.setattr(pinger, "ICMPv4Socket", FakeSocket)
    monkeypatch.setattr(pinger, "ICMPv6Socket", FakeSocket)
    monkeypatch.setattr(pinger, "AsyncSocket", FakeAsyncSocket)
    monkeypatch.setattr(pinger, "ICMPRequest", lambda **kw: SimpleNamespace(time=1.0, **kw))
    return FakeAsyncSocket


@pytest.mark.asyncio
async def test_router_reply_is_a_hop(icmp):
    icmp.reply = FakeReply("10.0.0.1", 1.012, error=bare(TimeExceeded))
    outcome = await IcmpProber().probe("1.1.1.1", 3, 1.0)
    assert outcome.succeeded
    assert outcome.address == "10.0.0.1"
    assert outcome.rtt_ms == pytest.approx(12.0)
    assert icmp.sent[0].ttl == 3
    assert icmp.sent[0].destination == "1.1.1.1"
    assert FakeSocket.instances[0].closed


@pytest.mark.asyncio
async def test_echo_reply_from_target(icmp):
    icmp.reply = FakeReply("1.1.1.1", 1.005)
    outcome = await IcmpProber().probe("1.1.1.1", 9, 1.0)
    assert outcome.address == "1.1.1.1"
    assert outcome.rtt_ms == pytest.approx(5.0)


@pytest.mark.asyncio
async def test_unreachable_is_loss(icmp):
    icmp.reply = FakeReply("10.0.0.1", 1.001, error=bare(DestinationUnreachable))
    outcome = await IcmpProber().probe("1.1.1.1", 3, 1.0)
    assert not outcome.succeeded
    assert outcome.address is None


@pytest.mark.asyncio
async def test_timeout_is_loss(icmp):
    icmp.failure = bare(TimeoutExceeded)
    outcome = await IcmpProber().probe("1.1.1.1", 3, 0.5)
    assert not outcome.succeeded
    assert outcome.rtt_ms == 500.0


@pytest.mark.asyncio
async def test_each_probe_gets_its_own_sequence(icmp):
    icmp.reply = FakeReply("1.1.1.1", 1.0)
    prober = IcmpProber()
    for hop in (1, 2, 3):
        await prober.probe("1.1.1.1", hop, 1.0)
    sequences = [r.sequence for r in icmp.sent]
    assert len(set(sequences)) == 3
    assert len(FakeSocket.instances) == 3


@pytest.mark.asyncio
async def test_permission_denied_is_transport_error(monkeypatch, icmp):
    def refuse(privileged=True):
        raise bare(SocketPermissionError)

    monkeypatch.setattr(pinger, "ICMPv4Socket", refuse)
    with pytest.raises(ProbeTransportError):
        await IcmpProber().probe("1.1.1.1", 1, 1.0)


def test_icmp_available(monkeypatch):
    monkeypatch.setattr(pinger, "ICMPv4Socket", FakeSocket)
    assert pinger.icmp_available()

    def refuse(privileged=True):
        raise bare(SocketPermissionError)

    monkeypatch.setattr(pinger, "ICMPv4Socket", refuse)
    assert not pinger.icmp_available()
