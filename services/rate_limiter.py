#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Per-client request throttling for Playlist Stats.

A client key (usually the originating IP address) may start a new
aggregation only once the cooldown since its last accepted request has
elapsed. State is bounded: keys whose cooldown has passed carry no
information and are swept, and the least recently accepted key is evicted
when the map is still full.
"""

import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Optional

from config import config
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class CooldownRateLimiter:
    """Enforces a minimum interval between accepted requests per client key.

    ``allow`` performs the check and the timestamp update under one lock, so
    two concurrent requests from the same key can never both be accepted
    inside one cooldown window.
    """

    def __init__(self, cooldown_ms: int = config.THROTTLE_COOLDOWN_MS,
                 capacity: int = config.THROTTLE_CAPACITY,
                 sweep_interval_seconds: float = config.THROTTLE_SWEEP_INTERVAL_SECONDS):
        """Initialize the rate limiter.

        Args:
            cooldown_ms: Minimum milliseconds between two accepted requests of a key.
            capacity: Maximum number of client keys tracked at once.
            sweep_interval_seconds: Minimum seconds between two sweeps of stale keys.
        """
        if cooldown_ms < 0:
            raise ValueError("cooldown_ms must be >= 0")
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")

        self.cooldown_ms = cooldown_ms
        self.capacity = capacity
        self.sweep_interval_ms = sweep_interval_seconds * 1000

        # client_key -> last accepted timestamp (ms), oldest acceptance first
        self._last_accepted: "OrderedDict[str, float]" = OrderedDict()
        self._last_sweep_ms: Optional[float] = None
        self._lock = threading.Lock()

        self._stats = {
            "accepted": 0,
            "rejected": 0,
            "swept": 0,
            "evicted": 0,
        }
        logger.info(
            f"Rate limiter initialized: {cooldown_ms}ms cooldown per client, capacity {capacity}.",
            cooldown_ms=cooldown_ms,
            capacity=capacity
        )

    @staticmethod
    def _now_ms() -> float:
        # Monotonic so acceptance order matches timestamp order for the sweep
        return time.monotonic() * 1000

    def allow(self, client_key: str, now_ms: Optional[float] = None) -> bool:
        """Decide whether ``client_key`` may make a request at ``now_ms``.

        Args:
            client_key: Opaque client identifier.
            now_ms: Current time in milliseconds; defaults to the monotonic clock.

        Returns:
            bool: True if accepted (and recorded), False if still cooling down.
        """
        if now_ms is None:
            now_ms = self._now_ms()

        with self._lock:
            last_ms = self._last_accepted.get(client_key)
            # An unknown key behaves as if last accepted at the epoch
            if last_ms is not None and now_ms - last_ms < self.cooldown_ms:
                self._stats["rejected"] += 1
                return False

            if self._last_sweep_ms is None or now_ms - self._last_sweep_ms >= self.sweep_interval_ms:
                self._sweep(now_ms)

            if client_key not in self._last_accepted and len(self._last_accepted) >= self.capacity:
                self._sweep(now_ms)
                while len(self._last_accepted) >= self.capacity:
                    evicted_key, _ = self._last_accepted.popitem(last=False)
                    self._stats["evicted"] += 1
                    logger.debug(f"Throttle map full, evicted client key '{evicted_key}'.")

            self._last_accepted[client_key] = now_ms
            self._last_accepted.move_to_end(client_key)
            self._stats["accepted"] += 1
            return True

    def retry_after_seconds(self, client_key: str, now_ms: Optional[float] = None) -> int:
        """Whole seconds (at least 1) until ``client_key`` may retry."""
        if now_ms is None:
            now_ms = self._now_ms()
        with self._lock:
            last_ms = self._last_accepted.get(client_key)
        if last_ms is None:
            return 1
        remaining_ms = self.cooldown_ms - (now_ms - last_ms)
        return max(1, int(-(-remaining_ms // 1000)))

    def _sweep(self, now_ms: float) -> int:
        """Drop keys whose cooldown has elapsed. Caller must hold the lock."""
        self._last_sweep_ms = now_ms
        removed = 0
        # Ordered by acceptance time, so stop at the first key still cooling down
        while self._last_accepted:
            oldest_key, oldest_ms = next(iter(self._last_accepted.items()))
            if now_ms - oldest_ms < self.cooldown_ms:
                break
            del self._last_accepted[oldest_key]
            removed += 1
        if removed:
            self._stats["swept"] += removed
            logger.debug(f"Swept {removed} stale client key(s) from throttle map.")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_accepted)

    def get_stats(self) -> Dict[str, Any]:
        """Get current statistics about the rate limiter."""
        with self._lock:
            stats = dict(self._stats)
            stats["tracked_keys"] = len(self._last_accepted)
        stats["capacity"] = self.capacity
        stats["cooldown_ms"] = self.cooldown_ms
        return stats
