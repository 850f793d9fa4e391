"""certsync: TLS certificate lifecycle for reverse proxies.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import certsync
>>> certsync.__version__
'0.1.0'

Quick start
-----------
::

    from certsync import CertSyncConfig, InMemorySecretSource, Secret, build_synchronizer

    source = InMemorySecretSource()
    source.put(Secret("default", "site", {"tls.crt": cert_pem, "tls.key": key_pem}))
    synchronizer = build_synchronizer(CertSyncConfig(certificate_dir=tmp), source)
    synchronizer.sync("default/site")
    record = synchronizer.lookup("default/site")
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Certificates
# ------------------------------------------------------------------
from certsync.certificates.builder import CertificateBuilder
from certsync.certificates.chain import ChainResolver
from certsync.certificates.fake import default_fake_certificate, generate_fake_certificate
from certsync.certificates.persister import DiskPersister
from certsync.certificates.record import CertificateRecord, is_valid_hostname
from certsync.certificates.trust import TrustBundleConfigurer
from certsync.certificates.verifier import ChainVerifier, VerificationResult

# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------
from certsync.store.cache import LocalCertificateCache
from certsync.store.notifier import ChangeNotifier, ConfigurationChanged
from certsync.store.secrets import (
    FilesystemSecretSource,
    InMemorySecretSource,
    Secret,
    SecretSource,
)
from certsync.store.synchronizer import CertificateSynchronizer, SyncOutcome

# ------------------------------------------------------------------
# Listener, configuration, errors
# ------------------------------------------------------------------
from certsync.listener.provider import HotReloadableCertificateProvider, ListenerKeypair
from certsync.config import CertSyncConfig, build_synchronizer
from certsync.errors import (
    CertificateIOError,
    CertificateNotFoundError,
    CertificateParseError,
    CertKeyMismatchError,
    CertSyncError,
    ChainFetchError,
    ChainVerificationError,
    InvalidPEMError,
    ListenerStartupError,
    MalformedSANError,
    MalformedSecretError,
    SecretIsAuthOnlyError,
    SecretNotFoundError,
    WrongPEMTypeError,
)

__all__ = [
    # version
    "__version__",
    # certificates
    "CertificateBuilder",
    "CertificateRecord",
    "ChainResolver",
    "ChainVerifier",
    "DiskPersister",
    "TrustBundleConfigurer",
    "VerificationResult",
    "default_fake_certificate",
    "generate_fake_certificate",
    "is_valid_hostname",
    # store
    "CertificateSynchronizer",
    "ChangeNotifier",
    "ConfigurationChanged",
    "FilesystemSecretSource",
    "InMemorySecretSource",
    "LocalCertificateCache",
    "Secret",
    "SecretSource",
    "SyncOutcome",
    # listener
    "HotReloadableCertificateProvider",
    "ListenerKeypair",
    # configuration
    "CertSyncConfig",
    "build_synchronizer",
    # errors
    "CertKeyMismatchError",
    "CertSyncError",
    "CertificateIOError",
    "CertificateNotFoundError",
    "CertificateParseError",
    "ChainFetchError",
    "ChainVerificationError",
    "InvalidPEMError",
    "ListenerStartupError",
    "MalformedSANError",
    "MalformedSecretError",
    "SecretIsAuthOnlyError",
    "SecretNotFoundError",
    "WrongPEMTypeError",
]
