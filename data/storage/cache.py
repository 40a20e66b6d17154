# data/storage/cache.py

import asyncio
import fnmatch
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float  # clock seconds; inf for no expiry


class CacheManager:
    """
    In-process TTL cache shared by the analyzer, the route store and the
    HTTP response cache. Entries expire lazily on read and eagerly through
    a periodic sweep task. The clock is injectable so expiry can be driven
    from tests.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        clock: Optional[Callable[[], float]] = None,
        name: str = "cache",
    ):
        self.config = config or {}
        self.name = name
        self.clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._sweep_task: Optional[asyncio.Task] = None

        self.default_ttl = self.config.get('default_ttl', 300)
        self.sweep_interval = self.config.get('sweep_interval', 60)

        # Cache TTL settings (in seconds)
        self.ttl_settings = {
            'ai_analysis': 300,       # 5 minutes for heuristic analysis
            'route': 300,             # 5 minutes for quoted routes
            'bridge_quote': 300,      # 5 minutes for bridge quotes
            'http_response': 60,      # 1 minute for API responses
            'token_list': 3600,       # 1 hour for token lists
        }
        self.ttl_settings.update(self.config.get('ttl_settings', {}))

        self.stats = {
            'hits': 0,
            'misses': 0,
            'sets': 0,
            'expired': 0,
            'sweeps': 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic sweep task on the running loop."""
        if self._sweep_task and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started {self.name} sweeper (every {self.sweep_interval}s)")

    async def close(self) -> None:
        """Stop the sweeper and drop all entries."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        self._entries.clear()
        logger.info(f"Closed {self.name}")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"{self.name} sweep error: {e}")

    # ---------------------------------------------------------------
    # Operations
    # ---------------------------------------------------------------

    def _resolve_ttl(self, ttl: Optional[int], cache_type: Optional[str]) -> Optional[float]:
        if cache_type and cache_type in self.ttl_settings:
            return self.ttl_settings[cache_type]
        if ttl is None:
            return self.default_ttl
        return ttl

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if missing or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self.stats['misses'] += 1
            return None

        if entry.expires_at <= self.clock():
            del self._entries[key]
            self.stats['expired'] += 1
            self.stats['misses'] += 1
            return None

        self.stats['hits'] += 1
        return entry.value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        cache_type: Optional[str] = None
    ) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (stored by reference)
            ttl: Time to live in seconds; 0 or negative means no expiry
            cache_type: Optional cache type for predefined TTL settings
        """
        resolved = self._resolve_ttl(ttl, cache_type)
        expires_at = self.clock() + resolved if resolved and resolved > 0 else float('inf')
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)
        self.stats['sets'] += 1

    async def delete(self, key: Union[str, List[str]]) -> int:
        """Delete key(s) from cache."""
        keys = [key] if isinstance(key, str) else key
        removed = 0
        for k in keys:
            if self._entries.pop(k, None) is not None:
                removed += 1
        return removed

    async def exists(self, key: str) -> bool:
        """Check if a live key exists in cache."""
        entry = self._entries.get(key)
        return entry is not None and entry.expires_at > self.clock()

    async def invalidate(self, pattern: str) -> int:
        """Invalidate all keys matching a glob pattern."""
        keys = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for k in keys:
            del self._entries[k]
        if keys:
            logger.debug(f"Invalidated {len(keys)} {self.name} entries matching {pattern}")
        return len(keys)

    async def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        now = self.clock()
        expired = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for k in expired:
            del self._entries[k]

        self.stats['sweeps'] += 1
        self.stats['expired'] += len(expired)
        if expired:
            logger.debug(f"{self.name} sweep removed {len(expired)} entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        total = self.stats['hits'] + self.stats['misses']
        return {
            **self.stats,
            'size': len(self._entries),
            'hit_rate': self.stats['hits'] / total if total else 0.0,
        }
