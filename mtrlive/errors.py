from __future__ import annotations


class MtrError(Exception):
    """Base for every error raised by mtrlive."""


class ResolutionError(MtrError):
    def __init__(self, target: str) -> None:
        super().__init__(f"Host not found: {target}")
        self.target = target


class ProbeError(MtrError):
    """A single probe could not produce a usable outcome; counted as a loss."""


class ProbeTransportError(ProbeError):
    pass


class ParseError(ProbeError):
    pass


class AddressFormatError(ProbeError):
    def __init__(self, address: str) -> None:
        super().__init__(f"IPAddress parse error: {address}")
        self.address = address
