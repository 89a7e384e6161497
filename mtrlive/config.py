from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

BACKENDS = ("auto", "icmp", "ping")
MODES = ("rounds", "discover")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    max_hops: int = 30
    timeout_ms: int = 1000
    interval_ms: int = 1000
    window_size: int = 10
    backend: str = "auto"
    mode: str = "rounds"
    strict: bool = False
    count: Optional[int] = None  # rounds before exiting; None runs forever
    privileged: bool = True

    # GeoLite2 databases; looked up in the data dir when not given
    city_db: Optional[str] = None
    asn_db: Optional[str] = None

    log_file: Optional[str] = None
    log_level: str = "WARNING"

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def interval(self) -> float:
        return self.interval_ms / 1000.0

    def validate(self) -> "Settings":
        if not 1 <= self.max_hops <= 255:
            raise ValueError(f"max hops must be within 1..255, got {self.max_hops}")
        if self.timeout_ms <= 0:
            raise ValueError("timeout must be positive")
        if self.interval_ms <= 0:
            raise ValueError("interval must be positive")
        if self.window_size <= 0:
            raise ValueError("window size must be positive")
        if self.backend not in BACKENDS:
            raise ValueError(f"unknown backend: {self.backend}")
        if self.mode not in MODES:
            raise ValueError(f"unknown mode: {self.mode}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {self.log_level}")
        if self.count is not None and self.count < 1:
            raise ValueError("count must be at least 1")
        return self
