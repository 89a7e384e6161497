from __future__ import annotations

import contextlib
import ipaddress
import logging
import socket
from dataclasses import dataclass
from pathlib import Path
from shutil import which as _which
from typing import Iterable, Optional

from .errors import AddressFormatError, ResolutionError

log = logging.getLogger(__name__)


# ---------------- Filesystem helpers ----------------

def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def default_data_dir() -> Path:
    return Path.home() / "mtr"


# ---------------- Logging ----------------

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    The table owns the terminal, so records only ever go to a file; without one
    they are dropped.
    """
    logger = logging.getLogger("mtrlive")
    logger.setLevel(level.upper())
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    handler: logging.Handler
    if log_file:
        path = Path(log_file).expanduser()
        ensure_dir(path.parent)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.NullHandler()
    logger.addHandler(handler)
    logger.propagate = False
    return logger


# ---------------- Process / system helpers ----------------

def which(candidates: Iterable[str] | str) -> Optional[str]:
    if isinstance(candidates, str):
        return _which(candidates)
    for c in candidates:
        p = _which(c)
        if p:
            return p
    return None


# ---------------- Address helpers ----------------

def is_ip_literal(s: str) -> bool:
    try:
        socket.inet_pton(socket.AF_INET, s)
        return True
    except OSError:
        pass
    with contextlib.suppress(OSError, ValueError):
        socket.inet_pton(socket.AF_INET6, s)
        return True
    return False


def normalize_address(text: str) -> str:
    """
    Canonical text form of an IP address, so that '::0001' and '::1' compare equal.
    A link-local IPv6 scope ('fe80::1%eth0') is kept as reported.
    """
    raw = text.strip()
    addr, sep, scope = raw.partition("%")
    try:
        canonical = str(ipaddress.ip_address(addr))
    except ValueError:
        raise AddressFormatError(raw) from None
    return f"{canonical}{sep}{scope}"


@dataclass
class ResolvedHost:
    ip: str        # numeric IP for probing
    display: str   # what to show as target title


def resolve_host(target: str) -> ResolvedHost:
    """Resolve forward to an IP, preferring IPv4, and decide the display string."""
    target = target.strip()
    if not target:
        raise ResolutionError(target)

    if is_ip_literal(target):
        return ResolvedHost(ip=normalize_address(target), display=target)

    try:
        infos = socket.getaddrinfo(target, None)
    except (socket.gaierror, UnicodeError) as e:
        log.info("resolution of %s failed: %s", target, e)
        raise ResolutionError(target) from e

    infos_sorted = sorted(infos, key=lambda x: 0 if x[0] == socket.AF_INET else 1)
    for family, _type, _proto, _canon, sockaddr in infos_sorted:
        if family in (socket.AF_INET, socket.AF_INET6):
            ip = normalize_address(sockaddr[0])
            log.info("resolved %s to %s", target, ip)
            return ResolvedHost(ip=ip, display=target)

    raise ResolutionError(target)
