from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

""" Cache where entries expire after a period without access. """


_logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 5 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60


class ExpiringCache:
    """Thread-safe in-memory cache with inactivity-based expiry.

    Brief:
        Every entry remembers when it was last read or written. A background
        sweeper thread wakes every ``sweep_interval_seconds`` and removes the
        entries that have been idle for longer than ``expiry_seconds``. Reads
        refresh recency, so a frequently requested entry never expires.

    Inputs:
        - expiry_seconds: Idle time after which an entry may be swept.
        - sweep_interval_seconds: Delay between background sweeps.
        - clock: Monotonic time source (injectable for tests).

    Outputs:
        ExpiringCache instance

    Notes:
        All dictionary operations, including the sweep, are serialized with a
        single lock. Reads take the same lock because they update recency. The
        lock is only ever held for a map lookup or update.

    Example use:
        >>> from xkcdns.cache.expiring import ExpiringCache
        >>> cache = ExpiringCache()
        >>> cache.set(614, "woodpecker")
        >>> cache.get(614)
        'woodpecker'
        >>> cache.get(615) is None
        True
    """

    def __init__(
        self,
        expiry_seconds: float = DEFAULT_EXPIRY_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initializes the ExpiringCache.

        Inputs:
            expiry_seconds: Non-negative idle window in seconds.
            sweep_interval_seconds: Positive sweep period in seconds.
            clock: Callable returning the current monotonic time in seconds.

        Outputs:
            None
        """
        self.expiry_seconds = max(0.0, float(expiry_seconds))
        self.sweep_interval_seconds = float(sweep_interval_seconds)
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        self._clock = clock

        # key -> (last_accessed, value)
        self._store: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

        # Best-effort counters for diagnostics; they do not affect semantics.
        self.calls_total: int = 0
        self.cache_hits: int = 0
        self.cache_misses: int = 0
        self.evictions_total: int = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        # Membership checks do not refresh recency.
        with self._lock:
            return key in self._store

    def get(self, key: Hashable) -> Any | None:
        """
        Retrieves an item from the cache and refreshes its last access time.

        Inputs:
            key: The key to retrieve.

        Outputs:
            The cached value, or None if the key is not present.

        Example use:
            >>> cache = ExpiringCache()
            >>> cache.set(1, "barrel")
            >>> cache.get(1)
            'barrel'
        """
        with self._lock:
            self.calls_total += 1
            entry = self._store.get(key)
            if entry is None:
                self.cache_misses += 1
                return None
            _, value = entry
            self._store[key] = (self._clock(), value)
            self.cache_hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        """
        Inserts or overwrites an item; its last access time becomes now.

        Inputs:
            key: The key to store the value under.
            value: The value to store.
        Outputs:
            None
        """
        with self._lock:
            self._store[key] = (self._clock(), value)

    def get_or_set(self, key: Hashable, value: Any) -> Tuple[Any, bool]:
        """Brief: Insert value only when key is absent, as one locked step.

        Inputs:
          - key: Cache key.
          - value: Candidate value to store.

        Outputs:
          - (stored_value, inserted): the value now held for key and whether
            this call inserted it. When the key was already present its value
            is returned (and its recency refreshed) and ``value`` is discarded.
        """

        with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is not None:
                existing = entry[1]
                self._store[key] = (now, existing)
                return existing, False
            self._store[key] = (now, value)
            return value, True

    def sweep(self) -> int:
        """Remove all entries idle for longer than the expiry window.

        Inputs:
            None
        Outputs:
            Number of entries removed.

        Example use:
            >>> cache = ExpiringCache()
            >>> cache.sweep()
            0
        """
        removed = 0
        with self._lock:
            now = self._clock()
            # Iterate on a snapshot so removals cannot disturb the iteration.
            for k, (last_accessed, _) in list(self._store.items()):
                if now - last_accessed > self.expiry_seconds:
                    del self._store[k]
                    removed += 1
                    _logger.debug("ExpiringCache eviction: key=%r", k)
            self.evictions_total += removed
        return removed

    def start(self) -> None:
        """Brief: Start the background sweeper thread (idempotent).

        Inputs:
          - None.

        Outputs:
          - None; spawns a daemon thread that sweeps every
            sweep_interval_seconds until stop() is called.
        """

        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_sweeper,
            name="xkcdns-cache-sweeper",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Brief: Signal the sweeper thread to exit and wait for it.

        Inputs:
          - timeout: Maximum seconds to wait for the thread to join.

        Outputs:
          - None.
        """

        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self.sweep_interval_seconds):
            try:
                removed = self.sweep()
                if removed:
                    _logger.debug(
                        "ExpiringCache sweep removed %d entries (%d remain)",
                        removed,
                        len(self),
                    )
            except Exception as e:  # pragma: no cover
                _logger.error("ExpiringCache sweep error: %s", e, exc_info=True)
