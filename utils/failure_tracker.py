"""
Failure accounting shared by every resolution that uses the same resolver.

Holds per-provider failure counters and the degraded-trust flag. An instance
is injected into the resolver, so independent resolvers never share state.
"""

import logging
import threading
from typing import Dict

logger = logging.getLogger(__name__)


class FailureTracker:
    """
    Per-provider failure counters plus a one-way degraded-trust flag.

    One lock covers all keys but is held only for a single O(1) dict update
    (read-increment-store or the reset swap), never across an await or a
    provider call. Rounds for unrelated providers therefore never wait on each
    other beyond that update. Reads take no lock. The flag is a
    threading.Event: once set it is never cleared.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._degraded = threading.Event()

    def increment_failure(self, provider_name: str) -> int:
        """Add one failure for a provider and return the new count."""
        with self._lock:
            count = self._counts.get(provider_name, 0) + 1
            self._counts[provider_name] = count
        logger.debug(f"Failure count for {provider_name} is now {count}")
        return count

    def get_failure_count(self, provider_name: str) -> int:
        return self._counts.get(provider_name, 0)

    def reset_all(self) -> None:
        """Set every tracked counter back to zero."""
        with self._lock:
            self._counts = dict.fromkeys(self._counts, 0)
        logger.info("All provider failure counters reset")

    def mark_degraded(self) -> None:
        if not self._degraded.is_set():
            logger.warning("Degraded trust enabled: optimistic acceptance disabled from now on")
        self._degraded.set()

    def is_degraded(self) -> bool:
        return self._degraded.is_set()

    def snapshot(self) -> Dict[str, int]:
        """Copy of the current counters, for logging and inspection."""
        with self._lock:
            return dict(self._counts)
