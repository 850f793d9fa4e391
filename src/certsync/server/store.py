"""Bounded certificate storage for the dynamic configuration endpoint.

Certificates pushed for each hostname are kept in a least-recently-used
table with a fixed capacity. Storing into a full table evicts the oldest
entry; the eviction is reported to the caller so it can be logged.
"""
from __future__ import annotations

import threading
from collections import OrderedDict

DEFAULT_CAPACITY = 1000


class CertificateDataStore:
    """Thread-safe LRU table of hostname to PEM certificate and key.

    Parameters
    ----------
    capacity:
        Maximum number of hostnames kept.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()

    def set(self, hostname: str, pem_cert_key: str) -> str | None:
        """Store *pem_cert_key* for *hostname*.

        Returns
        -------
        str | None
            The hostname evicted to make room, if any.
        """
        with self._lock:
            if hostname in self._entries:
                self._entries.move_to_end(hostname)
            self._entries[hostname] = pem_cert_key
            if len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                return evicted
            return None

    def get(self, hostname: str) -> str | None:
        """Return the PEM blob stored for *hostname*, or None."""
        with self._lock:
            value = self._entries.get(hostname)
            if value is not None:
                self._entries.move_to_end(hostname)
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
