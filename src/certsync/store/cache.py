"""LocalCertificateCache: certificate records keyed by secret identity.

Reads may happen from any thread while a synchronization is in progress;
every access takes a short internal lock. Writes are expected to come only
from the CertificateSynchronizer.
"""
from __future__ import annotations

import threading

from certsync.certificates.record import CertificateRecord
from certsync.errors import CertificateNotFoundError


class LocalCertificateCache:
    """Thread-safe mapping of ``namespace/name`` to CertificateRecord.

    Example
    -------
    ::

        cache = LocalCertificateCache()
        cache.add("default/example-tls", record)
        print(cache.get("default/example-tls").common_names)
    """

    def __init__(self) -> None:
        self._records: dict[str, CertificateRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CertificateRecord:
        """Return the record stored for *key*.

        Raises
        ------
        CertificateNotFoundError
            If no record exists for *key*.
        """
        with self._lock:
            try:
                return self._records[key]
            except KeyError:
                raise CertificateNotFoundError(key) from None

    def add(self, key: str, record: CertificateRecord) -> None:
        """Insert a record for a key seen for the first time."""
        with self._lock:
            self._records[key] = record

    def update(self, key: str, record: CertificateRecord) -> None:
        """Replace the record stored for *key*.

        Raises
        ------
        CertificateNotFoundError
            If no record exists for *key*.
        """
        with self._lock:
            if key not in self._records:
                raise CertificateNotFoundError(key)
            self._records[key] = record

    def delete(self, key: str) -> None:
        """Remove the record stored for *key*.

        Raises
        ------
        CertificateNotFoundError
            If no record exists for *key*.
        """
        with self._lock:
            if key not in self._records:
                raise CertificateNotFoundError(key)
            del self._records[key]

    def keys(self) -> list[str]:
        """Return a sorted list of cached secret keys."""
        with self._lock:
            return sorted(self._records)

    def items(self) -> list[tuple[str, CertificateRecord]]:
        """Return a snapshot of ``(key, record)`` pairs sorted by key."""
        with self._lock:
            return sorted(self._records.items())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
