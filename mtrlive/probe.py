from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Protocol

from .config import Settings
from .errors import AddressFormatError, ProbeError, ProbeTransportError
from .pingcmd import PingCommandProber, find_ping
from .pinger import IcmpProber, icmp_available
from .stats import ProbeOutcome

log = logging.getLogger(__name__)

# extra time a backend gets past its own timeout before the probe is abandoned
GRACE = 0.5


class Prober(Protocol):
    """
    One distance-limited echo round trip.

    Implementations return a ProbeOutcome for `hop`; a reply from a router
    (TTL exceeded) or from the target both count as succeeded. They may raise
    ProbeError subclasses for anything that is not a reply.
    """

    async def probe(self, target: str, hop: int, timeout: float) -> ProbeOutcome: ...


async def probe_guarded(
    prober: Prober,
    target: str,
    hop: int,
    timeout: float,
    *,
    strict: bool = False,
) -> ProbeOutcome:
    """
    Run one probe and never let it fail: every error, including a backend that
    overruns its timeout, becomes a loss for this hop. With `strict`, a reply
    carrying a malformed address is re-raised instead.
    """
    started = perf_counter()
    try:
        return await asyncio.wait_for(prober.probe(target, hop, timeout), timeout + GRACE)
    except AddressFormatError as e:
        if strict:
            log.error("hop %d: %s", hop, e)
            raise
        log.debug("hop %d: %s", hop, e)
    except ProbeError as e:
        log.debug("hop %d: %s: %s", hop, type(e).__name__, e)
    except asyncio.TimeoutError:
        log.debug("hop %d: probe abandoned after %.2fs", hop, timeout + GRACE)
    except Exception:
        log.debug("hop %d: probe failed", hop, exc_info=True)
    return ProbeOutcome.loss(hop, (perf_counter() - started) * 1000.0)


def select_prober(settings: Settings) -> Prober:
    """Pick the probe backend once at startup."""
    backend = settings.backend
    if backend == "icmp":
        if not settings.privileged:
            # datagram ICMP sockets never see Time Exceeded on Linux, so every
            # intermediate hop would read as lost
            raise ProbeTransportError("unprivileged ICMP sockets get no TTL exceeded replies; use --backend ping")
        log.info("using native ICMP backend (privileged=%s)", settings.privileged)
        return IcmpProber(privileged=settings.privileged)

    ping_path = find_ping()
    if backend == "ping":
        if not ping_path:
            raise ProbeTransportError("ping not found on PATH")
        log.info("using ping utility at %s", ping_path)
        return PingCommandProber(ping_path)

    # auto: raw sockets when we may open them, else the system ping
    if settings.privileged and icmp_available():
        log.info("using native ICMP backend")
        return IcmpProber(privileged=True)
    if ping_path:
        log.info("raw ICMP unavailable, using ping utility at %s", ping_path)
        return PingCommandProber(ping_path)
    raise ProbeTransportError("no probe backend: raw ICMP needs root and no ping utility was found")
