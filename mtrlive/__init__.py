"""Live mtr-style path monitor: per-hop RTT, jitter and loss toward a target."""

__version__ = "0.1.0"
