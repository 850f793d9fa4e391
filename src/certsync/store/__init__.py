"""Secret-driven certificate store.

Fetches secrets, synchronizes them into certificate records, caches the
records and signals downstream consumers when something changed.
"""
from __future__ import annotations

from certsync.store.cache import LocalCertificateCache
from certsync.store.notifier import ChangeNotifier, ConfigurationChanged
from certsync.store.secrets import (
    FilesystemSecretSource,
    InMemorySecretSource,
    Secret,
    SecretSource,
)
from certsync.store.synchronizer import (
    CertificateSynchronizer,
    SecretShape,
    SyncOutcome,
    classify_secret,
)

__all__ = [
    "CertificateSynchronizer",
    "ChangeNotifier",
    "ConfigurationChanged",
    "FilesystemSecretSource",
    "InMemorySecretSource",
    "LocalCertificateCache",
    "Secret",
    "SecretShape",
    "SecretSource",
    "SyncOutcome",
    "classify_secret",
]
