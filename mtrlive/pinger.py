from __future__ import annotations

import itertools
import os

from icmplib import (
    AsyncSocket,
    ICMPError,
    ICMPLibError,
    ICMPRequest,
    ICMPv4Socket,
    ICMPv6Socket,
    SocketPermissionError,
    TimeExceeded,
    TimeoutExceeded,
    is_ipv6_address,
)

from .errors import ProbeTransportError
from .stats import ProbeOutcome
from .util import normalize_address

PAYLOAD = b"a" * 32


def icmp_available(privileged: bool = True) -> bool:
    """Whether an ICMP socket can be opened by this process."""
    try:
        sock = ICMPv4Socket(privileged=privileged)
    except (ICMPLibError, OSError):
        return False
    sock.close()
    return True


class IcmpProber:
    """
    Send ICMP echo requests using icmplib, one socket per probe so that
    concurrent hops never wait on each other.
    """

    def __init__(self, privileged: bool = True) -> None:
        self.privileged = privileged
        self.ident = os.getpid() & 0xFFFF
        self._sequence = itertools.count()

    def _socket(self, target: str):
        cls = ICMPv6Socket if is_ipv6_address(target) else ICMPv4Socket
        try:
            return cls(privileged=self.privileged)
        except SocketPermissionError as e:
            raise ProbeTransportError(f"raw ICMP socket not permitted: {e}") from e
        except ICMPLibError as e:
            raise ProbeTransportError(str(e)) from e

    async def probe(self, target: str, hop: int, timeout: float) -> ProbeOutcome:
        request = ICMPRequest(
            destination=target,
            id=self.ident,
            sequence=next(self._sequence) & 0xFFFF,
            payload=PAYLOAD,
            ttl=hop,
        )
        with AsyncSocket(self._socket(target)) as sock:
            try:
                sock.send(request)
                reply = await sock.receive(request, timeout)
            except TimeoutExceeded:
                return ProbeOutcome.loss(hop, timeout * 1000.0)
            except ICMPLibError as e:
                raise ProbeTransportError(str(e)) from e

        rtt = (reply.time - request.time) * 1000.0
        try:
            reply.raise_for_status()
        except TimeExceeded:
            pass  # a router on the way answered
        except ICMPError:
            # unreachable and friends: nothing usable came back
            return ProbeOutcome.loss(hop, rtt)
        return ProbeOutcome(hop=hop, address=normalize_address(reply.source), rtt_ms=rtt, succeeded=True)
