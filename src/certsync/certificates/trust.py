"""Client-authentication trust bundles.

A secret carrying ``ca.crt`` supplies the trust anchor used to validate
client certificates. When the same secret also terminates TLS, the CA is
appended to the serving bundle; otherwise it gets a dedicated ``ca-*.pem``
file. Enabling client verification for a host is left to the proxy
configuration.
"""
from __future__ import annotations

import logging

from cryptography import x509

from certsync.certificates.pem import iter_pem_blocks
from certsync.certificates.persister import DiskPersister, file_checksum
from certsync.certificates.record import CertificateRecord
from certsync.certificates.verifier import ChainVerifier
from certsync.errors import CertificateIOError, ChainVerificationError

logger = logging.getLogger(__name__)


class TrustBundleConfigurer:
    """Writes CA bundles next to (or into) serving certificate files.

    Parameters
    ----------
    persister:
        Storage used for every file operation.
    """

    def __init__(self, persister: DiskPersister) -> None:
        self._persister = persister

    def configure_ca_only(
        self, ca_bytes: bytes, name: str, record: CertificateRecord
    ) -> None:
        """Write *ca_bytes* to ``ca-<name>.pem`` and point *record* at it.

        Both ``stored_file_path`` and ``ca_file_path`` are set to the new
        file and the checksum is recomputed.
        """
        path = self._persister.ca_file_path(name)
        self._persister.write_file(path, ca_bytes)

        record.stored_file_path = path
        record.ca_file_path = path
        record.checksum = file_checksum(path)
        logger.debug("Created CA Certificate for Authentication: %s", path)

    def configure_ca_with_serving_cert(
        self, ca_bytes: bytes, record: CertificateRecord
    ) -> None:
        """Verify *record* against *ca_bytes* and append the CA to its file.

        Raises
        ------
        ChainVerificationError
            If the serving certificate does not chain up to *ca_bytes*.
        CertificateIOError
            If the record has not been stored yet or its file cannot be
            read or rewritten.
        """
        roots = load_ca_bundle(ca_bytes)
        intermediates = load_ca_bundle(record.pem_bundle)[1:]
        result = ChainVerifier(roots).verify(record.certificate, intermediates=intermediates)
        if not result.valid:
            raise ChainVerificationError(result.errors)

        path = record.stored_file_path
        if path is None:
            raise CertificateIOError(
                "certificate must be stored on disk before a CA can be appended"
            )
        cert_and_key = self._persister.read_file(path)
        self._persister.write_file(path, cert_and_key + b"\n" + ca_bytes)

        record.ca_file_path = path
        record.checksum = file_checksum(path)
        logger.debug("Appended CA bundle to %s", path)


def load_ca_bundle(data: bytes) -> list[x509.Certificate]:
    """Parse every certificate block in *data*, skipping unparsable ones."""
    certificates = []
    for block in iter_pem_blocks(data):
        if block.label != "CERTIFICATE":
            continue
        try:
            certificates.append(x509.load_der_x509_certificate(block.data))
        except ValueError:
            logger.debug("Skipping unparsable certificate in CA bundle")
    return certificates
