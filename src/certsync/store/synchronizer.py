"""CertificateSynchronizer: keeps the local certificate cache in step with secrets.

Each synchronization fetches one secret, decides its shape, builds and
persists the matching certificate record, and updates the cache. A
downstream change signal is emitted only when the cached value actually
changes, so repeated syncs of an unchanged secret are no-ops.

All synchronizations in the process are serialized by one store-wide lock:
a single secret can touch a serving bundle, a CA file and the cache, and
readers must never observe a partial update across those.
"""
from __future__ import annotations

import logging
import threading
from enum import Enum

from certsync.certificates.builder import CertificateBuilder
from certsync.certificates.persister import DiskPersister
from certsync.certificates.record import CertificateRecord
from certsync.certificates.trust import TrustBundleConfigurer
from certsync.errors import (
    CertificateNotFoundError,
    CertSyncError,
    MalformedSecretError,
    SecretIsAuthOnlyError,
)
from certsync.store.cache import LocalCertificateCache
from certsync.store.notifier import ChangeNotifier
from certsync.store.secrets import (
    AUTH_KEY,
    CA_CERT_KEY,
    TLS_CERT_KEY,
    TLS_PRIVATE_KEY_KEY,
    Secret,
    SecretSource,
)

logger = logging.getLogger(__name__)


class SecretShape(str, Enum):
    """What a secret is used for, decided from which fields it carries."""

    KEYPAIR = "keypair"
    CA_ONLY = "ca_only"
    AUTH_ONLY = "auth_only"
    MALFORMED = "malformed"


class SyncOutcome(str, Enum):
    """Effect of a successful synchronization on the cache."""

    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def classify_secret(secret: Secret) -> SecretShape:
    """Decide the shape of *secret*.

    Precedence: keypair, then CA-only, then auth-only, otherwise malformed.
    A keypair counts only when both fields are non-empty.
    """
    data = secret.data
    if data.get(TLS_CERT_KEY) and data.get(TLS_PRIVATE_KEY_KEY):
        return SecretShape.KEYPAIR
    if data.get(CA_CERT_KEY):
        return SecretShape.CA_ONLY
    if AUTH_KEY in data:
        return SecretShape.AUTH_ONLY
    return SecretShape.MALFORMED


class CertificateSynchronizer:
    """Orchestrates building, persisting and caching certificate records.

    Parameters
    ----------
    source:
        Where secrets are fetched from.
    builder:
        Validates certificate material.
    persister:
        Writes serving bundles.
    trust:
        Writes client-authentication CA bundles.
    cache:
        Cache owned by this synchronizer. A new one is created when omitted.
    notifier:
        Receives one change signal per cache insert or update.
    enable_dynamic_certificates:
        When True, keypair secrets without a CA stay in memory only and are
        delivered to the proxy through the dynamic configuration endpoint.
    """

    def __init__(
        self,
        source: SecretSource,
        builder: CertificateBuilder,
        persister: DiskPersister,
        trust: TrustBundleConfigurer,
        cache: LocalCertificateCache | None = None,
        notifier: ChangeNotifier | None = None,
        enable_dynamic_certificates: bool = True,
    ) -> None:
        self._source = source
        self._builder = builder
        self._persister = persister
        self._trust = trust
        self._cache = cache if cache is not None else LocalCertificateCache()
        self._notifier = notifier if notifier is not None else ChangeNotifier()
        self._enable_dynamic_certificates = enable_dynamic_certificates
        self._lock = threading.Lock()

    @property
    def cache(self) -> LocalCertificateCache:
        return self._cache

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def sync(self, key: str) -> SyncOutcome:
        """Synchronize the secret stored under *key*.

        Parameters
        ----------
        key:
            ``namespace/name`` of the secret.

        Returns
        -------
        SyncOutcome
            Whether the cache entry was added, updated or left unchanged.

        Raises
        ------
        CertSyncError
            Any build, persist or classification failure, including
            :class:`SecretIsAuthOnlyError` for basic-auth secrets. The cache
            is left unchanged.
        """
        with self._lock:
            logger.debug("Syncing Secret %r", key)
            record = self._build_record(key)

            try:
                current = self._cache.get(key)
            except CertificateNotFoundError:
                current = None

            if current is not None and current == record:
                return SyncOutcome.UNCHANGED

            if current is None:
                logger.info("Adding Secret %r to the local store", key)
                self._cache.add(key, record)
                outcome = SyncOutcome.ADDED
            else:
                logger.info("Updating Secret %r in the local store", key)
                self._cache.update(key, record)
                outcome = SyncOutcome.UPDATED

            self._notifier.notify()
            return outcome

    def handle_secret_change(self, key: str) -> bool:
        """Sync *key*, logging instead of raising. Returns True on success.

        Secrets used for basic authentication are skipped silently.
        """
        try:
            self.sync(key)
        except SecretIsAuthOnlyError:
            logger.debug("Secret %r is used for authentication, skipping", key)
            return False
        except CertSyncError as exc:
            logger.warning("Error obtaining X.509 certificate for Secret %r: %s", key, exc)
            return False
        return True

    def sync_all(self) -> dict[str, bool]:
        """Run :meth:`handle_secret_change` for every key the source lists."""
        return {key: self.handle_secret_change(key) for key in self._source.list_keys()}

    def lookup(self, key: str) -> CertificateRecord:
        """Return the cached record for *key*.

        Raises
        ------
        CertificateNotFoundError
            If *key* has never been synchronized successfully.
        """
        return self._cache.get(key)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build_record(self, key: str) -> CertificateRecord:
        secret = self._source.fetch_by_key(key)
        shape = classify_secret(secret)
        ca = secret.data.get(CA_CERT_KEY, b"")

        if shape is SecretShape.KEYPAIR:
            record = self._builder.build_keypair_certificate(
                secret.data[TLS_CERT_KEY], secret.data[TLS_PRIVATE_KEY_KEY]
            )
            if not self._enable_dynamic_certificates or ca:
                self._persister.store_on_disk(key, record)
            if ca:
                self._trust.configure_ca_with_serving_cert(ca, record)

            message = "Configuring Secret %r for TLS encryption (CN: %s)"
            if CA_CERT_KEY in secret.data:
                message += " and authentication"
            logger.debug(message, key, record.common_names)

        elif shape is SecretShape.CA_ONLY:
            record = self._builder.build_ca_only_certificate(ca)
            self._trust.configure_ca_only(ca, key, record)
            logger.debug("Configuring Secret %r for TLS authentication", key)

        elif shape is SecretShape.AUTH_ONLY:
            raise SecretIsAuthOnlyError(key)

        else:
            raise MalformedSecretError(key)

        record.namespace = secret.namespace
        record.name = secret.name
        return record
