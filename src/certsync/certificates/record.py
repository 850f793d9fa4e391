"""Certificate record dataclass and hostname matching.

A CertificateRecord is the validated, possibly persisted form of a TLS
secret. Records are compared by full value: two records are equal only when
the parsed certificate, the host names, the bundle bytes, the file paths and
the checksum all match.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509


@dataclass
class CertificateRecord:
    """Represents a validated serving certificate or CA-only trust anchor.

    Parameters
    ----------
    certificate:
        The parsed leaf (or CA) X.509 certificate.
    common_names:
        Subject CommonName plus SAN host names, sorted ascending and
        deduplicated. Empty for CA-only records.
    expire_time:
        The certificate's ``notAfter`` as an aware UTC datetime.
    pem_bundle:
        PEM certificate (plus completed chain), a newline, then the PEM key.
        Empty for CA-only records.
    stored_file_path:
        Path of the file holding the bundle, once written.
    ca_file_path:
        Path of the file holding the CA bundle, once configured. May equal
        *stored_file_path*.
    checksum:
        SHA-1 hex digest of *stored_file_path* as of the last write.
    namespace:
        Namespace of the secret the record was built from.
    name:
        Name of the secret the record was built from.
    """

    certificate: x509.Certificate
    common_names: list[str] = field(default_factory=list)
    expire_time: datetime.datetime | None = None
    pem_bundle: bytes = b""
    stored_file_path: Path | None = None
    ca_file_path: Path | None = None
    checksum: str = ""
    namespace: str = ""
    name: str = ""

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    @property
    def is_ca_only(self) -> bool:
        """True when the record only carries a trust anchor."""
        return not self.common_names

    @property
    def is_stored_on_disk(self) -> bool:
        """True once the record has been written to the certificate directory."""
        return self.stored_file_path is not None

    @property
    def key(self) -> str:
        """The ``namespace/name`` identity of the originating secret."""
        return f"{self.namespace}/{self.name}"

    def is_expired(self) -> bool:
        """Return True if the certificate has passed its notAfter date."""
        return datetime.datetime.now(datetime.timezone.utc) > self._not_after()

    def days_remaining(self) -> int:
        """Return number of days until expiry (negative if already expired)."""
        delta = self._not_after() - datetime.datetime.now(datetime.timezone.utc)
        return delta.days

    def matches_hostname(self, hostname: str) -> bool:
        """Return True if *hostname* is served by this certificate."""
        return is_valid_hostname(hostname, self.common_names)

    def _not_after(self) -> datetime.datetime:
        return self.expire_time or self.certificate.not_valid_after_utc


def is_valid_hostname(hostname: str, common_names: list[str]) -> bool:
    """Check whether *hostname* matches one of *common_names*.

    A name matches case-insensitively, either exactly or after replacing the
    first label of *hostname* with ``*`` (single-label wildcard).

    Parameters
    ----------
    hostname:
        The requested host, e.g. ``"www.example.com"``.
    common_names:
        Names from a certificate record.

    Returns
    -------
    bool
    """
    labels = hostname.split(".")
    labels[0] = "*"
    wildcard = ".".join(labels).lower()
    target = hostname.lower()
    for common_name in common_names:
        candidate = common_name.lower()
        if candidate == target or candidate == wildcard:
            return True
    return False
