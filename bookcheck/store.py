"""In-memory keyed snapshot store with TTL expiry.

Holds FareConfirm responses by offer id and booking snapshots by test case
id so later steps can compare against them. Safe for concurrent use from
test threads running different agencies.
"""

import copy
import logging
import threading
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)

_DEFAULT_TTL_HOURS = 24


class SnapshotStore:
    """Thread-safe dict of deep-copied snapshots with TTL-based expiry."""

    def __init__(self, default_ttl_hours: Optional[float] = _DEFAULT_TTL_HOURS) -> None:
        self.default_ttl_hours = default_ttl_hours
        self._entries: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: Any, ttl_hours: Optional[float] = None) -> None:
        """Store a deep copy of data under key.

        Args:
            key: Offer id, test case id, or any other lookup key.
            data: The snapshot (usually a parsed JSON response).
            ttl_hours: Time-to-live in hours. Defaults to the store default;
                a store default of None means entries never expire.
        """
        ttl = ttl_hours if ttl_hours is not None else self.default_ttl_hours
        expires_at = time.monotonic() + ttl * 3600 if ttl is not None else None
        snapshot = copy.deepcopy(data)
        with self._lock:
            self._entries[key] = (snapshot, expires_at)
        logger.debug("Snapshot stored: %s", key)

    def get(self, key: str) -> Optional[Any]:
        """Return a deep copy of the snapshot, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            data, expires_at = entry
            if expires_at is not None and time.monotonic() > expires_at:
                # Expired - clean up
                del self._entries[key]
                logger.debug("Snapshot expired: %s", key)
                return None
        return copy.deepcopy(data)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        """Remove all snapshots."""
        with self._lock:
            self._entries.clear()
