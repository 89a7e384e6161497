from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from .config import BACKENDS, LOG_LEVELS, MODES, Settings
from .discovery import DiscoverySession
from .errors import AddressFormatError, ProbeTransportError, ResolutionError
from .locate import open_locator
from .probe import select_prober
from .render import header_lines
from .session import Session
from .terminal import RichTerminal
from .util import resolve_host, setup_logging

log = logging.getLogger(__name__)

# development default used when no target is given
DEV_TARGET_ENV = "MTR_LIVE_DEV_TARGET"


def build_parser() -> argparse.ArgumentParser:
    defaults = Settings()
    ap = argparse.ArgumentParser(
        prog="mtr-live",
        description="Live per-hop latency, jitter and loss toward a target.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("target", nargs="?", help="Hostname or IP to trace")
    ap.add_argument("--max-hops", "-m", type=int, default=defaults.max_hops, help="Max hops probed before the target is found")
    ap.add_argument("--timeout", type=int, default=defaults.timeout_ms, help="Per-probe timeout in ms")
    ap.add_argument("--interval", "-i", type=int, default=defaults.interval_ms, help="Milliseconds between rounds")
    ap.add_argument("--window", type=int, default=defaults.window_size, help="Samples kept per hop for Rtt and Jitter")
    ap.add_argument("--backend", choices=BACKENDS, default=defaults.backend, help="Probe implementation")
    ap.add_argument("--mode", choices=MODES, default=defaults.mode, help="rounds: probe all hops together; discover: find hops, then ping each")
    ap.add_argument("--strict", action="store_true", help="Exit on a reply with a malformed address")
    ap.add_argument("--count", "-c", type=int, default=None, help="Stop after N rounds")
    ap.add_argument("--unprivileged", action="store_true", help="No raw sockets: auto falls back to the ping utility; not valid with --backend icmp")
    ap.add_argument("--city-db", default=None, help="GeoLite2 City database")
    ap.add_argument("--asn-db", default=None, help="GeoLite2 ASN database")
    ap.add_argument("--log-file", default=None, help="Write diagnostics to this file")
    ap.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, default=defaults.log_level, help="Logging level for --log-file")
    return ap


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        max_hops=args.max_hops,
        timeout_ms=args.timeout,
        interval_ms=args.interval,
        window_size=args.window,
        backend=args.backend,
        mode=args.mode,
        strict=args.strict,
        count=args.count,
        privileged=not args.unprivileged,
        city_db=args.city_db,
        asn_db=args.asn_db,
        log_file=args.log_file,
        log_level=args.log_level,
    ).validate()


async def monitor(target: str, settings: Settings) -> None:
    resolved = resolve_host(target)
    prober = select_prober(settings)
    locator = open_locator(settings)

    header = header_lines(
        resolved.display,
        resolved.ip,
        locator.registration(resolved.ip),
        locator.locate(resolved.ip),
        settings.max_hops,
    )
    sink = RichTerminal()
    sink.reset()

    cls = DiscoverySession if settings.mode == "discover" else Session
    session = cls(resolved.ip, prober, settings, locator=locator, sink=sink, header=header)
    log.info("monitoring %s (%s) in %s mode", resolved.display, resolved.ip, settings.mode)
    await session.run(rounds=settings.count)


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    target = args.target or os.environ.get(DEV_TARGET_ENV)
    if not target or not target.strip():
        ap.print_usage(sys.stderr)
        print("Invalid target.\nuse mtr-live <host>", file=sys.stderr)
        return 2

    try:
        settings = settings_from_args(args)
    except ValueError as e:
        ap.error(str(e))

    setup_logging(settings.log_level, settings.log_file)

    try:
        asyncio.run(monitor(target.strip(), settings))
    except KeyboardInterrupt:
        # graceful stop on Ctrl+C
        return 130
    except ResolutionError as e:
        print(str(e), file=sys.stderr)
        return 1
    except (AddressFormatError, ProbeTransportError) as e:
        log.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
