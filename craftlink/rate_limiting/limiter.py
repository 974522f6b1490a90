import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from craftlink.rate_limiting.constants import logger


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset: int          # epoch seconds when the window closes
    retry_after: int    # seconds, 0 when allowed


class FixedWindowRateLimiter:
    """
    In-process fixed window counters keyed by an arbitrary string.
    Not shared across processes. hit() never awaits between the read and the write,
    so it is safe on a single event loop without a lock.
    """

    def __init__(self, sweep_interval: float = 60.0, clock: Callable[[], float] = time.time):
        self._records: Dict[str, RateLimitRecord] = {}
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._records)

    def hit(self, key: str, limit: int, window: int) -> RateLimitDecision:
        current = self._clock()
        record = self._records.get(key)

        if record is None or record.reset_at <= current:
            record = RateLimitRecord(count=1, reset_at=current + window)
            self._records[key] = record
        else:
            # keeps counting past the limit , the window still closes at the same time
            record.count += 1

        allowed = record.count <= limit
        retry_after = 0 if allowed else max(1, math.ceil(record.reset_at - current))
        return RateLimitDecision(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - record.count),
            reset=math.ceil(record.reset_at),
            retry_after=retry_after,
        )

    def reset(self, key: Optional[str] = None):
        if key is None:
            self._records.clear()
        else:
            self._records.pop(key, None)

    def sweep(self) -> int:
        current = self._clock()
        stale = [k for k, rec in self._records.items() if rec.reset_at <= current]
        for k in stale:
            del self._records[k]
        return len(stale)

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.sweep()
            if removed:
                logger.debug("ratelimit.sweep", extra={"removed": removed, "tracked": len(self._records)})

    def start(self):
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="ratelimit-sweeper")
            logger.debug("ratelimit.sweeper.started", extra={"interval": self.sweep_interval})

    async def stop(self):
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.debug("ratelimit.sweeper.stopped")
