"""State container for the in-memory rate limiter.

The limiter never keeps module-level state: each instance owns (or is handed)
a ``RateLimitState`` so tests and apps get isolated maps.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class OffenseRecord:
    count: int = 0
    last_offense_time: int = 0


@dataclass
class RateLimitState:
    """Per-key limiter bookkeeping guarded by a single lock.

    Attributes:
        requests: key -> timestamps (ms) of accepted requests, oldest first.
        offenses: key -> consecutive offense record.
        cooldowns: key -> instant (ms) after which requests are accepted again.
        lock: Guards read-modify-write of all three maps.
    """

    requests: dict[str, list[int]] = field(default_factory=dict)
    offenses: dict[str, OffenseRecord] = field(default_factory=dict)
    cooldowns: dict[str, int] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def clear(self) -> None:
        with self.lock:
            self.requests.clear()
            self.offenses.clear()
            self.cooldowns.clear()
