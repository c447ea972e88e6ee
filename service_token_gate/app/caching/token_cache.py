"""
In-memory expiring cache for exchanged downstream tokens.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 60.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry:
    """A cached token and the monotonic instant it stops being valid."""

    value: str
    expires_at: float


class ExpiringTokenCache:
    """Thread-safe TTL cache with lazy eviction and a background sweep.

    ``get`` never returns an entry whose ``expires_at`` has been reached and
    deletes it on the way out. Entries that are never read again are reclaimed
    by the sweep task started with :meth:`start_sweep`.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")

        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self.logger = get_logger("token_gate.token_cache")
        self.metrics = metrics
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None
        self._stats = {
            "hits": 0,
            "misses": 0,
            "expired": 0,
            "swept": 0,
            "sweep_passes": 0,
        }

    def get(self, key: str) -> Optional[str]:
        """Return the cached value, or ``None`` if missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                result = "miss"
            elif now >= entry.expires_at:
                del self._entries[key]
                self._stats["expired"] += 1
                self._stats["misses"] += 1
                result = "expired"
            else:
                self._stats["hits"] += 1
                result = "hit"
            size = len(self._entries)

        self._record_lookup(result, size)
        return entry.value if result == "hit" else None

    def set(self, key: str, value: str) -> None:
        """Store ``value`` for ``key`` until ``now + ttl``, replacing any prior entry."""
        entry = CacheEntry(value=value, expires_at=self._clock() + self.ttl)
        with self._lock:
            self._entries[key] = entry
            size = len(self._entries)

        if self.metrics:
            self.metrics.set_gauge("token_cache_entries", size)

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        """Drop every entry regardless of expiry."""
        with self._lock:
            self._entries.clear()

        if self.metrics:
            self.metrics.set_gauge("token_cache_entries", 0)

    def sweep(self) -> int:
        """Run one reclamation pass and return the number of removed entries."""
        scan_started = self._clock()
        with self._lock:
            expired: List[Tuple[str, CacheEntry]] = [
                (key, entry)
                for key, entry in self._entries.items()
                if scan_started >= entry.expires_at
            ]

        removed = 0
        with self._lock:
            for key, entry in expired:
                # An entry re-set after the scan is a different object.
                if self._entries.get(key) is entry:
                    del self._entries[key]
                    removed += 1
            self._stats["swept"] += removed
            self._stats["sweep_passes"] += 1
            size = len(self._entries)

        if self.metrics:
            self.metrics.increment_counter("token_cache_swept_total", removed)
            self.metrics.set_gauge("token_cache_entries", size)

        if removed:
            self.logger.debug("Token cache sweep removed expired entries", removed=removed, remaining=size)
        return removed

    @property
    def sweep_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start_sweep(self) -> None:
        """Start the background sweep. No-op if it is already running."""
        if self.sweep_running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info("Token cache sweep started", interval_seconds=self.sweep_interval)

    async def stop_sweep(self) -> None:
        """Cancel the background sweep and wait for it to finish.

        Safe to call repeatedly or before :meth:`start_sweep`.
        """
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("Token cache sweep stopped")

    async def _sweep_loop(self) -> None:
        """Background loop evicting expired entries every ``sweep_interval``."""
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                self.logger.error("Token cache sweep failed", error=str(e))

    def stats(self) -> Dict[str, Any]:
        """Counters describing cache usage."""
        with self._lock:
            stats: Dict[str, Any] = dict(self._stats)
            stats["size"] = len(self._entries)
        stats["ttl_seconds"] = self.ttl
        stats["sweep_interval_seconds"] = self.sweep_interval
        stats["sweep_running"] = self.sweep_running
        return stats

    def _record_lookup(self, result: str, size: int) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("token_cache_lookups_total", result=result)
        if result == "expired":
            self.metrics.set_gauge("token_cache_entries", size)
