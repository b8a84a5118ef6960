from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..config import CLI


@dataclass
class Progress:
    label: str
    total: int | None
    every_n: int = CLI.progress_every_n
    min_interval_s: float = CLI.progress_min_interval_s
    started_s: float = field(default_factory=time.monotonic)
    last_log_s: float = field(default_factory=time.monotonic)
    last_seen: int = 0

    def maybe_log(self, seen: int) -> None:
        if seen <= 0 or seen == self.last_seen:
            return

        now = time.monotonic()
        # Log every N items, and at least every `min_interval_s` so long runs never look stuck.
        should_log = (self.every_n > 0 and seen // self.every_n > self.last_seen // self.every_n) or (
            self.min_interval_s > 0 and (now - self.last_log_s) >= self.min_interval_s
        )
        if self.total and seen >= self.total:
            should_log = True
        if not should_log:
            return

        elapsed = now - self.started_s
        self.last_log_s = now
        self.last_seen = seen
        if self.total:
            logging.info(f"[{self.label}] Processed {seen}/{self.total} ({elapsed:.1f}s)")
        else:
            logging.info(f"[{self.label}] Processed {seen} ({elapsed:.1f}s)")
