from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .stats import HopRecord
from .terminal import TerminalSink

SENTINEL = "*"


def _fmt_ms(v: Optional[float]) -> str:
    return f"{v:.1f}ms" if v is not None else SENTINEL


def _fmt_loss(pct: float) -> str:
    return f"{pct:.2f}%"


def _addr(rec: Optional[HopRecord]) -> str:
    if rec is None:
        return SENTINEL
    return rec.address or SENTINEL


def valid_hop_count(records: Sequence[Optional[HopRecord]]) -> int:
    """Deepest hop distance that has ever recorded a reply (0 when none has)."""
    for i in range(len(records) - 1, -1, -1):
        rec = records[i]
        if rec is not None and rec.has_replied:
            return i + 1
    return 0


def show_count(records: Sequence[Optional[HopRecord]], active_hop_count: int) -> int:
    # one row past the deepest replying hop, never past the active range
    return min(valid_hop_count(records) + 1, active_hop_count)


def address_width(records: Sequence[Optional[HopRecord]]) -> int:
    width = len("Address")
    for rec in records:
        width = max(width, len(_addr(rec)))
    return width + 1


def _line(idx: str, rtt: str, jitter: str, loss: str, addr: str, location: str, width: int) -> str:
    return f"{idx:<5}{rtt:<10}{jitter:<10}{loss:<9}{addr:<{width}}{location}".rstrip()


def format_hop(hop: int, rec: Optional[HopRecord], width: int) -> str:
    if rec is None:
        return _line(str(hop), SENTINEL, SENTINEL, SENTINEL, SENTINEL, SENTINEL, width)
    avg = rec.avg_rtt
    if avg is None:
        return _line(str(hop), SENTINEL, SENTINEL, _fmt_loss(rec.loss_pct), SENTINEL, SENTINEL, width)
    return _line(
        str(hop),
        _fmt_ms(avg),
        _fmt_ms(rec.jitter),
        _fmt_loss(rec.loss_pct),
        _addr(rec),
        rec.location or "",
        width,
    )


def column_header(width: int) -> str:
    return _line("No.", "Rtt", "Jitter", "Loss", "Address", "Location", width)


def header_lines(name: str, address: str, registration: str, location: str, max_hops: int) -> List[str]:
    return [
        f"mtr to {name} with max {max_hops} hops:",
        f"  Target: {address}",
        f"  Registration: {registration}",
        f"  Location: {location}",
    ]


@dataclass
class Frame:
    header: List[str]
    hops: List[str] = field(default_factory=list)
    trailer: Optional[str] = None

    @property
    def lines(self) -> List[str]:
        lines = self.header + self.hops
        if self.trailer is not None:
            lines.append(self.trailer)
        return lines


def build_frame(
    header: Sequence[str],
    records: Sequence[Optional[HopRecord]],
    active_hop_count: int,
    converged: bool,
    sent: int,
) -> Frame:
    """
    Turn the current hop state into the lines of one screen.

    Shows every hop up to one past the deepest that has replied, capped at the
    active hop count. A trailing '*' row marks that the path end is not
    confirmed yet.
    """
    width = address_width(records)
    count = show_count(records, active_hop_count)

    hops = []
    for i in range(count):
        rec = records[i] if i < len(records) else None
        hops.append(format_hop(i + 1, rec, width))

    trailer = None
    if not converged or count < active_hop_count:
        trailer = _line(SENTINEL, SENTINEL, SENTINEL, SENTINEL, SENTINEL, SENTINEL, width)

    return Frame(
        header=list(header) + [f"  Sent: {sent}", column_header(width)],
        hops=hops,
        trailer=trailer,
    )


def paint(sink: TerminalSink, frame: Frame) -> None:
    """Write a frame top-down, blank everything below it and park the cursor."""
    lines = frame.lines
    for row, text in enumerate(lines):
        sink.write_line(row, text)
    for row in range(len(lines), sink.height):
        sink.clear_line(row)
    sink.set_cursor(0, len(lines))
    sink.flush()
