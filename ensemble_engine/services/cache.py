"""
Prediction cache.

LRU cache with per-entry TTL, plus single-flight collapse: concurrent
requests for the same key share one in-flight computation and receive the
same result or the same error.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ComputationAbandoned(Exception):
    """The caller computing a key was cancelled before it produced a value."""


class PredictionCache(Generic[T]):
    """Bounded TTL cache keyed by request fingerprint.

    Example:
        ```python
        cache = PredictionCache(ttl_seconds=3600, max_size=1000)
        prediction = await cache.get_or_compute(key, lambda: compute(market_data))
        ```
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            ttl_seconds: Entry lifetime. Expired entries are treated as absent.
            max_size: Least-recently-used entries are evicted beyond this size.
            clock: Monotonic time source in seconds.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock

        self._entries: "OrderedDict[str, Tuple[T, float]]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Future] = {}

        self.hits = 0
        self.misses = 0
        self.collapsed = 0

    def get(self, key: str) -> Optional[T]:
        """Return a live entry, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = (value, self._clock() + self.ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache entry {evicted}")

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry. In-flight computations are left to finish."""
        self._entries.clear()

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        on_result: Optional[Callable[[T], None]] = None,
    ) -> T:
        """Return the cached value for ``key`` or compute it exactly once.

        Failed computations are not cached; every waiter receives the error.
        When the caller running the computation is cancelled, the waiters are
        not: the first of them takes over the computation.

        Args:
            key: Cache key.
            compute: Coroutine factory producing the value on a miss.
            on_result: Called once with a freshly computed value, after it is
                cached and before waiters are released.
        """
        while True:
            cached = self.get(key)
            if cached is not None:
                self.hits += 1
                return cached

            inflight = self._inflight.get(key)
            if inflight is None:
                break

            self.collapsed += 1
            try:
                return await asyncio.shield(inflight)
            except ComputationAbandoned:
                logger.debug(f"Computation of {key} was cancelled by its caller, retrying")

        self.misses += 1
        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future

        try:
            value = await compute()
        except asyncio.CancelledError:
            future.set_exception(ComputationAbandoned(key))
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure does not warn at GC
            future.exception()
            raise
        else:
            self.set(key, value)
            try:
                if on_result is not None:
                    on_result(value)
            finally:
                future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    def get_stats(self) -> Dict[str, float]:
        """Cache statistics."""
        lookups = self.hits + self.misses + self.collapsed
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "collapsed": self.collapsed,
            "hit_rate": (self.hits + self.collapsed) / lookups if lookups else 0.0,
        }
