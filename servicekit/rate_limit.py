"""In-memory per-client token bucket rate limiter."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 60.0
STALE_AFTER_SECONDS = 180.0

Clock = Callable[[], float]


@dataclass
class TokenBucket:
    """Holds up to ``capacity`` tokens, refilling continuously at ``rate`` per second.

    A new bucket starts full. ``allow`` never blocks: it either takes a token
    immediately or reports that none is available.
    """

    rate: float
    capacity: int
    tokens: float = field(init=False)
    updated_at: float = field(init=False)
    clock: Clock = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        self.tokens = float(self.capacity)
        self.updated_at = self.clock()

    def _refill(self, now: float) -> None:
        elapsed = now - self.updated_at
        if elapsed > 0:
            self.tokens = min(float(self.capacity), self.tokens + elapsed * self.rate)
            self.updated_at = now

    def allow(self) -> bool:
        self._refill(self.clock())
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


@dataclass
class ClientState:
    bucket: TokenBucket
    last_seen: float


class RateLimiter:
    """Tracks one token bucket per client identifier.

    The registry is guarded by a single lock; lookup, creation, the last-seen
    update and token consumption happen as one step. Entries idle for longer
    than ``stale_after`` seconds are removed by :meth:`sweep`, which the
    background task started with :meth:`start` runs every ``sweep_interval``
    seconds.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        *,
        clock: Clock = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        stale_after: float = STALE_AFTER_SECONDS,
    ) -> None:
        self.rate = rate
        self.burst = burst
        self.sweep_interval = sweep_interval
        self.stale_after = stale_after
        self._clock = clock
        self._clients: Dict[str, ClientState] = {}
        self._lock = Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, client_id: object) -> bool:
        with self._lock:
            return client_id in self._clients

    def allow(self, client_id: str) -> bool:
        """Consume one token for ``client_id``; return ``False`` when none is left."""

        with self._lock:
            now = self._clock()
            state = self._clients.get(client_id)
            if state is None:
                state = ClientState(
                    bucket=TokenBucket(rate=self.rate, capacity=self.burst, clock=self._clock),
                    last_seen=now,
                )
                self._clients[client_id] = state
            state.last_seen = max(state.last_seen, now)
            return state.bucket.allow()

    def sweep(self) -> int:
        """Drop clients not seen within ``stale_after`` seconds and return how many went."""

        with self._lock:
            cutoff = self._clock() - self.stale_after
            stale = [cid for cid, state in self._clients.items() if state.last_seen < cutoff]
            for client_id in stale:
                del self._clients[client_id]
        if stale:
            LOGGER.debug("rate limiter sweep", extra={"removed": len(stale)})
        return len(stale)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception:  # noqa: BLE001
                LOGGER.exception("rate limiter sweep failed")

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the background sweep on the running event loop."""

        if self.running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        """Cancel the background sweep and wait for it to finish."""

        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
