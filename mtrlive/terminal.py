from __future__ import annotations

from typing import Optional, Protocol

from rich.console import Console
from rich.control import Control, ControlType
from rich.text import Text


class TerminalSink(Protocol):
    @property
    def height(self) -> int: ...

    def write_line(self, row: int, text: str) -> None: ...

    def clear_line(self, row: int) -> None: ...

    def set_cursor(self, col: int, row: int) -> None: ...

    def flush(self) -> None: ...


_ERASE_LINE = Control((ControlType.ERASE_IN_LINE, 2))


class RichTerminal:
    """
    Fixed-position line output. Rows outside the visible area are ignored so a
    short window never scrolls.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        # Keep colors simple for SSH / VMs
        self.console = console or Console(color_system="standard", highlight=False)

    @property
    def height(self) -> int:
        return self.console.size.height

    @property
    def width(self) -> int:
        return self.console.size.width

    def _visible(self, row: int) -> bool:
        return 0 <= row < self.height

    def clear_line(self, row: int) -> None:
        if self._visible(row):
            self.console.control(Control.move_to(0, row), _ERASE_LINE)

    def write_line(self, row: int, text: str) -> None:
        if not self._visible(row):
            return
        self.clear_line(row)
        line = Text(text, no_wrap=True, overflow="crop", end="")
        line.truncate(self.width - 1)
        self.console.print(line, end="", soft_wrap=True)

    def set_cursor(self, col: int, row: int) -> None:
        row = max(0, min(row, self.height - 1))
        self.console.control(Control.move_to(col, row))

    def flush(self) -> None:
        self.console.file.flush()

    def reset(self) -> None:
        """Wipe the screen before the first frame."""
        self.console.control(Control.clear(), Control.home())
