"""
TTL cache of initialized ticks for concentrated-liquidity pools.

Tick bitmaps change far less often than slot0, so the simulator reuses a
pool's tick list for a few cycles instead of re-reading it every time.
"""

import time
from typing import Awaitable, Callable, Dict, Optional, Sequence, Tuple

from .constants import DEFAULT_CONFIG
from .types import PoolState
from .utils import get_logger, short_address

logger = get_logger(__name__)

TickList = Tuple[Tuple[int, int], ...]
TickLoader = Callable[[PoolState], Awaitable[Sequence[Tuple[int, int]]]]


class TickDataCache:
    """
    TickDataProvider backed by an async loader and a per-pool TTL.

    Owned by whoever builds the simulator; nothing is shared at module level.
    """

    def __init__(
        self,
        loader: TickLoader,
        ttl_sec: float = DEFAULT_CONFIG["TICK_CACHE_TTL_SEC"],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._entries: Dict[str, Tuple[float, TickList]] = {}
        self.hits = 0
        self.misses = 0

    async def get_ticks(self, pool: PoolState) -> TickList:
        now = self.clock()
        entry = self._entries.get(pool.key)
        if entry is not None and now - entry[0] < self.ttl_sec:
            self.hits += 1
            return entry[1]

        self.misses += 1
        ticks = tuple(sorted((int(t), int(net)) for t, net in await self.loader(pool)))
        self._entries[pool.key] = (now, ticks)
        logger.debug(
            f"Loaded {len(ticks)} initialized ticks for {short_address(pool.address)}"
        )
        return ticks

    def invalidate(self, pool_address: Optional[str] = None) -> None:
        """Drop one pool's entry, or everything when no address is given."""
        if pool_address is None:
            self._entries.clear()
        else:
            self._entries.pop(pool_address.lower(), None)

    def __len__(self) -> int:
        return len(self._entries)
