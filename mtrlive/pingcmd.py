from __future__ import annotations

import asyncio
import contextlib
import math
import os
import re
import sys
from time import perf_counter
from typing import List, Optional, Tuple

from .errors import ParseError, ProbeTransportError
from .stats import ProbeOutcome
from .util import normalize_address, which

# Matches the responder on reply lines, whatever the platform:
#   "64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=5.12 ms"
#   "From 10.0.0.1 icmp_seq=1 Time to live exceeded"
#   "Reply from 10.0.0.1: TTL expired in transit."
#   "64 bytes from 2606:4700::1111: icmp_seq=1 ttl=57 time=5.1 ms"
_FROM_RE = re.compile(
    r"""
    \bfrom\s+
    (?P<host>[^\s()]+?):?                 # address, or name when not numeric
    (?:\s+\((?P<ip>[^)]+)\))?:?           # "name (ip)" form
    (?:\s+(?P<rest>.*))?$
    """,
    re.IGNORECASE | re.VERBOSE,
)

# "time=1.54 ms", "time=12ms", "time<1ms"
_TIME_RE = re.compile(r"time[=<]\s*([0-9]+(?:\.[0-9]+)?)\s*ms", re.IGNORECASE)
_EXCEEDED_RE = re.compile(r"time to live exceeded|ttl expired", re.IGNORECASE)
_UNREACH_RE = re.compile(r"unreachable", re.IGNORECASE)


def find_ping() -> Optional[str]:
    path = which(["ping"])
    if path:
        return path
    for cand in ("/bin/ping", "/sbin/ping", "/usr/bin/ping", "/usr/sbin/ping"):
        if os.path.exists(cand) and os.access(cand, os.X_OK):
            return cand
    return None


def ping_args(ping_path: str, target: str, ttl: int, timeout: float, platform: str = sys.platform) -> List[str]:
    """Single echo request with the given TTL, numeric output only."""
    timeout_ms = max(1, int(round(timeout * 1000)))
    if platform.startswith("win"):
        return [ping_path, "-n", "1", "-i", str(ttl), "-w", str(timeout_ms), target]
    if platform == "darwin":
        return [ping_path, "-n", "-c", "1", "-m", str(ttl), "-W", str(timeout_ms), target]
    # iputils takes whole seconds
    return [ping_path, "-n", "-c", "1", "-t", str(ttl), "-W", str(max(1, math.ceil(timeout))), target]


def parse_ping_output(text: str) -> Optional[Tuple[Optional[str], Optional[float]]]:
    """
    Find the reply in ping's output.

    Returns None when nothing answered, (address, rtt_ms) for an echo reply or a
    TTL-exceeded notice (rtt_ms None when ping does not print one), and
    (None, None) when the reply was an unreachable notice.
    Raises ParseError for a reply line it does not understand and
    AddressFormatError when the responder is not an IP address.
    """
    for line in text.splitlines():
        m = _FROM_RE.search(line)
        if not m:
            continue
        rest = m.group("rest") or ""
        responder = m.group("ip") or m.group("host")

        if _UNREACH_RE.search(rest):
            return None, None
        if _EXCEEDED_RE.search(rest):
            return normalize_address(responder), None
        t = _TIME_RE.search(rest)
        if t:
            return normalize_address(responder), float(t.group(1))
        raise ParseError(f"unrecognised ping reply: {line.strip()!r}")
    return None


class PingCommandProber:
    """Probe by running the system ping once per hop and reading its output."""

    def __init__(self, ping_path: str, platform: str = sys.platform) -> None:
        self.ping_path = ping_path
        self.platform = platform

    async def _run(self, args: List[str]) -> Tuple[str, str, int]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ProbeTransportError(f"cannot run {args[0]}: {e}") from e

        # ping enforces its own -W deadline; a hung child is cut off by the
        # caller's cancellation, and reaped here so no zombie is left behind
        try:
            out_b, err_b = await proc.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise

        return out_b.decode("utf-8", "replace"), err_b.decode("utf-8", "replace"), proc.returncode

    async def probe(self, target: str, hop: int, timeout: float) -> ProbeOutcome:
        args = ping_args(self.ping_path, target, hop, timeout, self.platform)
        started = perf_counter()
        out, err, code = await self._run(args)
        elapsed = (perf_counter() - started) * 1000.0

        reply = parse_ping_output(out)
        if reply is None:
            if code >= 2:
                raise ProbeTransportError(err.strip() or f"ping exited with status {code}")
            if code == 0:
                raise ParseError("ping reported success but printed no reply")
            return ProbeOutcome.loss(hop, elapsed)

        address, rtt = reply
        if address is None:
            return ProbeOutcome.loss(hop, elapsed)
        return ProbeOutcome(hop=hop, address=address, rtt_ms=elapsed if rtt is None else rtt, succeeded=True)
